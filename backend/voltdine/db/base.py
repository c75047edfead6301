"""
Declarative base and common columns shared by all models.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, Enum as SQLEnum
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BaseModel(Base):
    """Abstract model with primary key and audit timestamps (naive UTC)."""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


def enum_column(enum_cls, **kwargs):
    """Column storing enum values (not member names) in a portable VARCHAR."""
    return Column(
        SQLEnum(
            enum_cls,
            native_enum=False,
            length=32,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs
    )
