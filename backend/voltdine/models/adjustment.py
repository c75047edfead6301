"""
Payment adjustment model for after-the-fact charges and refunds.
"""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Integer, CheckConstraint
from sqlalchemy.orm import relationship
from voltdine.db.base import BaseModel, enum_column


class AdjustmentType(str, enum.Enum):
    """Adjustment type enumeration."""
    ADDITIONAL_CHARGE = "additional_charge"
    REFUND = "refund"


class AdjustmentStatus(str, enum.Enum):
    """Adjustment status enumeration. Only processed adjustments move revenue."""
    PENDING = "pending"
    PROCESSED = "processed"
    REJECTED = "rejected"


class AdjustedBy(str, enum.Enum):
    """Who recorded the adjustment."""
    VENDOR = "vendor"
    EMPLOYEE = "employee"


class RefundMethod(str, enum.Enum):
    """How a refund was handed back to the customer."""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"


class PaymentAdjustment(BaseModel):
    """Additional charge or refund attached to exactly one transaction."""
    __tablename__ = "payment_adjustments"

    charging_session_id = Column(Integer, ForeignKey("charging_sessions.id"), nullable=True, index=True)
    food_order_id = Column(Integer, ForeignKey("food_orders.id"), nullable=True, index=True)
    type = enum_column(AdjustmentType, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    status = enum_column(AdjustmentStatus, default=AdjustmentStatus.PENDING, nullable=False)
    reason = Column(String(500), nullable=False)
    notes = Column(String(500), nullable=True)
    adjusted_by = enum_column(AdjustedBy, default=AdjustedBy.VENDOR, nullable=False)
    adjusted_by_name = Column(String(200), nullable=True)
    refund_method = enum_column(RefundMethod, nullable=True)
    payment_request_id = Column(String(64), nullable=True, unique=True)
    processed_at = Column(DateTime, nullable=True)

    # Relationships
    charging_session = relationship("ChargingSession", back_populates="adjustments")
    food_order = relationship("FoodOrder", back_populates="adjustments")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_adjustment_amount_non_negative"),
        CheckConstraint(
            "(charging_session_id IS NULL) <> (food_order_id IS NULL)",
            name="ck_adjustment_single_owner"
        ),
    )
