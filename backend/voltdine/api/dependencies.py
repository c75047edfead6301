"""
Shared route dependencies: resolve the caller from the bearer token.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from voltdine.core.security import ADMIN_ROLE, VENDOR_ROLE, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)
) -> dict:
    """Decode the bearer token or reject the request."""
    if credentials is None or not credentials.credentials:
        raise _credentials_exception("Not authenticated")
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise _credentials_exception()
    return payload


def get_current_vendor_id(payload: dict = Depends(get_token_payload)) -> int:
    """Vendor id carried in the token's subject."""
    if payload.get("role", VENDOR_ROLE) != VENDOR_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Vendor access required"
        )
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise _credentials_exception()


def get_current_admin(payload: dict = Depends(get_token_payload)) -> str:
    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return payload["sub"]
