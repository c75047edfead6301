"""
Revenue-bearing transactions: charging sessions and food orders.
"""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship, declared_attr
from voltdine.db.base import BaseModel, enum_column


class TransactionKind(str, enum.Enum):
    """Transaction kind enumeration."""
    CHARGING = "charging"
    FOOD = "food"


class ChargingStatus(str, enum.Enum):
    """Charging session (booking) status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class OrderStatus(str, enum.Enum):
    """Food order status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Customer payment status enumeration."""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class TransactionSettlementStatus(str, enum.Enum):
    """Claim state of a transaction with respect to settlements."""
    PENDING = "pending"
    INCLUDED_IN_SETTLEMENT = "included_in_settlement"
    SETTLED = "settled"


class SettlementTrackedMixin:
    """Columns shared by every transaction kind that can be settled."""

    gross_amount = Column(Numeric(15, 2), nullable=False)  # Total charged to the customer
    payment_status = enum_column(PaymentStatus, default=PaymentStatus.PENDING, nullable=False)
    customer_name = Column(String(100), nullable=True)

    settlement_status = enum_column(
        TransactionSettlementStatus,
        default=TransactionSettlementStatus.PENDING,
        nullable=True,
        index=True
    )
    settlement_requested_at = Column(DateTime, nullable=True)
    settlement_requested_for = Column(String(32), nullable=True)  # Requested day or period, ISO format

    @declared_attr
    def vendor_id(cls):
        return Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    @declared_attr
    def settlement_id(cls):
        return Column(Integer, ForeignKey("settlements.id"), nullable=True, index=True)

    @property
    def reference(self) -> str:
        raise NotImplementedError

    @property
    def completion_time(self):
        raise NotImplementedError


class ChargingSession(SettlementTrackedMixin, BaseModel):
    """EV charging session booked at one of the vendor's stations."""
    __tablename__ = "charging_sessions"

    kind = TransactionKind.CHARGING

    booking_number = Column(String(40), nullable=True, index=True)
    station_name = Column(String(200), nullable=True)
    status = enum_column(ChargingStatus, default=ChargingStatus.PENDING, nullable=False, index=True)
    merchant_amount = Column(Numeric(15, 2), nullable=True)  # Explicit merchant share, if priced
    platform_fee = Column(Numeric(15, 2), nullable=True)  # Fee recorded at booking time
    actual_end_time = Column(DateTime, nullable=True, index=True)

    # Relationships
    vendor = relationship("Vendor", back_populates="charging_sessions")
    settlement = relationship("Settlement", foreign_keys="ChargingSession.settlement_id")
    adjustments = relationship(
        "PaymentAdjustment",
        back_populates="charging_session",
        cascade="all, delete-orphan",
        order_by="PaymentAdjustment.id"
    )

    @property
    def reference(self) -> str:
        return self.booking_number or f"BK{self.id}"

    @property
    def completion_time(self):
        """Session end time, or last update for sessions closed without one."""
        return self.actual_end_time or self.updated_at


class FoodOrder(SettlementTrackedMixin, BaseModel):
    """Food order placed at one of the vendor's restaurants."""
    __tablename__ = "food_orders"

    kind = TransactionKind.FOOD

    order_number = Column(String(40), nullable=True, index=True)
    restaurant_name = Column(String(200), nullable=True)
    item_count = Column(Integer, nullable=False, default=0)
    status = enum_column(OrderStatus, default=OrderStatus.PENDING, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True, index=True)

    # Food orders carry no separate merchant share; the vendor keeps the full total
    merchant_amount = None

    # Relationships
    vendor = relationship("Vendor", back_populates="food_orders")
    settlement = relationship("Settlement", foreign_keys="FoodOrder.settlement_id")
    adjustments = relationship(
        "PaymentAdjustment",
        back_populates="food_order",
        cascade="all, delete-orphan",
        order_by="PaymentAdjustment.id"
    )

    @property
    def reference(self) -> str:
        return self.order_number or f"ORD{self.id}"

    @property
    def completion_time(self):
        return self.completed_at


TRANSACTION_MODELS = {
    TransactionKind.CHARGING: ChargingSession,
    TransactionKind.FOOD: FoodOrder,
}
