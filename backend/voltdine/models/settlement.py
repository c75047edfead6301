"""
Settlement model: a batched payout request covering a vendor's transactions.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Numeric, Date, DateTime, ForeignKey, Integer, JSON
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from voltdine.db.base import BaseModel, enum_column


class SettlementStatus(str, enum.Enum):
    """Settlement lifecycle status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class SettlementRequestType(str, enum.Enum):
    """How the settlement was requested."""
    SCHEDULED = "scheduled"
    URGENT = "urgent"
    ADMIN_INITIATED = "admin_initiated"


ACTIVE_SETTLEMENT_STATUSES = (SettlementStatus.PENDING, SettlementStatus.PROCESSING)


class Settlement(BaseModel):
    """Settlement model. Rows are never deleted; only status moves forward."""
    __tablename__ = "settlements"

    settlement_code = Column(String(32), unique=True, nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    status = enum_column(SettlementStatus, default=SettlementStatus.PENDING, nullable=False, index=True)
    request_type = enum_column(SettlementRequestType, default=SettlementRequestType.URGENT, nullable=False)

    settlement_date = Column(Date, nullable=False)  # Day (or first day) the payout covers
    period_start = Column(DateTime, nullable=False, index=True)  # Inclusive, naive UTC
    period_end = Column(DateTime, nullable=False, index=True)  # Exclusive (next local midnight), naive UTC

    transaction_ids = Column(JSON, nullable=False, default=list)  # ChargingSession ids
    order_ids = Column(JSON, nullable=False, default=list)  # FoodOrder ids
    bank_details = Column(JSON, nullable=False)  # Snapshot taken at request time
    details = Column(JSON, nullable=True)  # Per-kind breakdown recorded at creation

    reason = Column(String(500), nullable=True)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    processing_notes = Column(String(1000), nullable=True)
    payment_reference = Column(String(100), nullable=True)

    # Relationships
    vendor = relationship("Vendor", back_populates="settlements")

    @hybrid_property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SETTLEMENT_STATUSES

    @is_active.expression
    def is_active(cls):
        return cls.status.in_(ACTIVE_SETTLEMENT_STATUSES)

    @property
    def transaction_count(self) -> int:
        return len(self.transaction_ids or []) + len(self.order_ids or [])

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """True when this settlement's period intersects [start, end)."""
        return self.period_start < end and self.period_end > start
