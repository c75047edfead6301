"""
Security utilities for JWT authentication.
"""
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from voltdine.core.config import settings

ADMIN_ROLE = "admin"
VENDOR_ROLE = "vendor"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def create_vendor_token(vendor_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Token identifying a vendor; the vendor id travels in ``sub``."""
    return create_access_token({"sub": str(vendor_id), "role": VENDOR_ROLE}, expires_delta)


def create_admin_token(admin_name: str, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token({"sub": admin_name, "role": ADMIN_ROLE}, expires_delta)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        return None
