"""
Adjustment service for after-the-fact charges and refunds on a transaction.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
import logging
import secrets

from sqlalchemy.orm import Session

from voltdine.core.exceptions import NotFoundError, ValidationError
from voltdine.core.utils import quantize_money, to_decimal
from voltdine.models.adjustment import (
    AdjustedBy,
    AdjustmentStatus,
    AdjustmentType,
    PaymentAdjustment,
    RefundMethod,
)
from voltdine.models.transaction import (
    ChargingStatus,
    OrderStatus,
    TransactionKind,
    TRANSACTION_MODELS,
)
from voltdine.services.periods import as_aware_utc, utcnow
from voltdine.services.revenue_service import (
    adjustment_totals,
    customer_net_amount,
    display_amount,
    net_revenue,
)

logger = logging.getLogger(__name__)

# Only sessions in progress or finished can be adjusted
_ADJUSTABLE_STATUSES = {
    TransactionKind.CHARGING: {ChargingStatus.ACTIVE, ChargingStatus.COMPLETED},
    TransactionKind.FOOD: {OrderStatus.SERVED, OrderStatus.COMPLETED},
}


def get_transaction(db: Session, vendor_id: int, kind, transaction_id: int):
    """Load one of the vendor's transactions or raise NotFoundError."""
    try:
        kind = TransactionKind(kind)
    except ValueError:
        raise ValidationError("Unknown transaction kind", {"kind": str(kind)})
    model = TRANSACTION_MODELS[kind]
    transaction = db.query(model).filter(
        model.id == transaction_id,
        model.vendor_id == vendor_id
    ).first()
    if not transaction:
        raise NotFoundError("Transaction not found", {"kind": kind.value, "id": transaction_id})
    return transaction


def create_adjustment(
    db: Session,
    transaction,
    adjustment_type,
    amount,
    reason: str,
    adjusted_by=AdjustedBy.VENDOR,
    adjusted_by_name: Optional[str] = None,
    notes: Optional[str] = None,
    refund_method=None,
    now: Optional[datetime] = None,
) -> PaymentAdjustment:
    """
    Record an additional charge or a refund.

    Refunds are handed back immediately and count as processed. Additional
    charges wait for the customer to pay and stay pending until processed.
    """
    try:
        adjustment_type = AdjustmentType(adjustment_type)
        adjusted_by = AdjustedBy(adjusted_by)
    except ValueError as exc:
        raise ValidationError(str(exc))

    amount = to_decimal(amount)
    if not amount.is_finite() or amount < Decimal("0.01"):
        raise ValidationError("Adjustment amount must be at least 0.01", {"amount": str(amount)})
    if not reason or not reason.strip():
        raise ValidationError("A reason is required for payment adjustments")
    if transaction.status not in _ADJUSTABLE_STATUSES[transaction.kind]:
        raise ValidationError(
            "Payment adjustments can only be made for active or completed transactions",
            {"status": transaction.status.value}
        )

    moment = as_aware_utc(now or utcnow()).replace(tzinfo=None)
    adjustment = PaymentAdjustment(
        type=adjustment_type,
        amount=quantize_money(amount),
        reason=reason.strip(),
        notes=notes.strip() if notes else None,
        adjusted_by=adjusted_by,
        adjusted_by_name=adjusted_by_name,
        created_at=moment,
    )
    if adjustment_type == AdjustmentType.REFUND:
        try:
            adjustment.refund_method = RefundMethod(refund_method or RefundMethod.CASH)
        except ValueError:
            raise ValidationError("Unknown refund method", {"refund_method": str(refund_method)})
        adjustment.status = AdjustmentStatus.PROCESSED
        adjustment.processed_at = moment
    else:
        adjustment.status = AdjustmentStatus.PENDING
        adjustment.payment_request_id = f"PAY_{int(as_aware_utc(moment).timestamp())}_{secrets.token_hex(5)}"

    transaction.adjustments.append(adjustment)
    db.commit()
    db.refresh(adjustment)

    logger.info(
        f"{adjustment_type.value} of {adjustment.amount} recorded on "
        f"{transaction.kind.value} transaction {transaction.id} ({adjustment.status.value})"
    )
    return adjustment


def resolve_adjustment(
    db: Session,
    transaction,
    adjustment_id: int,
    new_status,
    now: Optional[datetime] = None,
) -> PaymentAdjustment:
    """Mark a pending additional charge as processed (paid) or rejected."""
    try:
        new_status = AdjustmentStatus(new_status)
    except ValueError:
        raise ValidationError("Unknown adjustment status", {"status": str(new_status)})
    if new_status == AdjustmentStatus.PENDING:
        raise ValidationError("An adjustment can only move to processed or rejected")

    adjustment = next((a for a in transaction.adjustments if a.id == adjustment_id), None)
    if adjustment is None:
        raise NotFoundError("Adjustment not found", {"adjustment_id": adjustment_id})
    if adjustment.status != AdjustmentStatus.PENDING:
        raise ValidationError(
            f"Adjustment is already {adjustment.status.value}",
            {"adjustment_id": adjustment_id}
        )

    adjustment.status = new_status
    if new_status == AdjustmentStatus.PROCESSED:
        adjustment.processed_at = as_aware_utc(now or utcnow()).replace(tzinfo=None)
    db.commit()
    db.refresh(adjustment)
    return adjustment


def adjustment_summary(transaction) -> dict:
    """Totals shown next to a transaction's adjustment history."""
    additional, refunded = adjustment_totals(transaction)
    merchant_net = net_revenue(transaction)
    return {
        "original_amount": to_decimal(transaction.gross_amount),
        "total_additional_charges": additional,
        "total_refunds": refunded,
        "net_amount": customer_net_amount(transaction),
        "merchant_net_amount": display_amount(merchant_net),
        "merchant_net_amount_signed": merchant_net,
    }
