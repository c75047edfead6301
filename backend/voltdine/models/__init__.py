"""Models package - Import all models for SQLAlchemy registration."""
from voltdine.models.vendor import Vendor
from voltdine.models.transaction import (
    TransactionKind,
    ChargingStatus,
    OrderStatus,
    PaymentStatus,
    TransactionSettlementStatus,
    ChargingSession,
    FoodOrder,
    TRANSACTION_MODELS,
)
from voltdine.models.adjustment import (
    AdjustmentType,
    AdjustmentStatus,
    AdjustedBy,
    RefundMethod,
    PaymentAdjustment,
)
from voltdine.models.settlement import (
    SettlementStatus,
    SettlementRequestType,
    ACTIVE_SETTLEMENT_STATUSES,
    Settlement,
)

__all__ = [
    "Vendor",
    "TransactionKind",
    "ChargingStatus",
    "OrderStatus",
    "PaymentStatus",
    "TransactionSettlementStatus",
    "ChargingSession",
    "FoodOrder",
    "TRANSACTION_MODELS",
    "AdjustmentType",
    "AdjustmentStatus",
    "AdjustedBy",
    "RefundMethod",
    "PaymentAdjustment",
    "SettlementStatus",
    "SettlementRequestType",
    "ACTIVE_SETTLEMENT_STATUSES",
    "Settlement",
]
