"""
Revenue service: the single place net merchant revenue is computed.

Every dashboard, analytics and settlement path calls net_revenue() so the
payout a vendor requests and the figures they see can never drift apart.
"""
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from voltdine.core.config import settings
from voltdine.core.utils import to_decimal
from voltdine.models.adjustment import AdjustmentStatus, AdjustmentType
from voltdine.models.transaction import TransactionKind


def base_amount(transaction, platform_fee: Optional[Decimal] = None) -> Decimal:
    """
    Merchant share before adjustments.

    An explicit, non-negative merchant_amount wins. Otherwise charging sessions
    give up the fixed platform fee and food orders keep the full gross amount
    (restaurants pay a flat subscription instead of per-order fees).
    """
    merchant_amount = getattr(transaction, "merchant_amount", None)
    if merchant_amount is not None and to_decimal(merchant_amount) >= 0:
        return to_decimal(merchant_amount)

    gross = to_decimal(transaction.gross_amount)
    if transaction.kind == TransactionKind.CHARGING:
        fee = settings.PLATFORM_FEE_FIXED if platform_fee is None else to_decimal(platform_fee)
        return max(Decimal(0), gross - fee)
    return gross


def adjustment_totals(transaction) -> Tuple[Decimal, Decimal]:
    """Return (additional charges, refunds) from processed adjustments only."""
    additional = Decimal(0)
    refunded = Decimal(0)
    for adjustment in transaction.adjustments or []:
        if adjustment.status != AdjustmentStatus.PROCESSED:
            continue
        if adjustment.type == AdjustmentType.ADDITIONAL_CHARGE:
            additional += to_decimal(adjustment.amount)
        elif adjustment.type == AdjustmentType.REFUND:
            refunded += to_decimal(adjustment.amount)
    return additional, refunded


def net_revenue(transaction, platform_fee: Optional[Decimal] = None) -> Decimal:
    """
    Net amount owed to the vendor for one transaction.

    The result is signed: refunds larger than the base produce a negative
    value. Presentation code clamps with display_amount(); accounting code
    never does.
    """
    additional, refunded = adjustment_totals(transaction)
    return base_amount(transaction, platform_fee) + additional - refunded


def sum_net_revenue(transactions: Iterable) -> Decimal:
    return sum((net_revenue(t) for t in transactions), Decimal(0))


def display_amount(value: Decimal) -> Decimal:
    """Clamp a signed amount at zero for operator-facing "current net" figures."""
    return max(Decimal(0), to_decimal(value))


def customer_net_amount(transaction) -> Decimal:
    """What the customer has paid in total once adjustments are applied."""
    additional, refunded = adjustment_totals(transaction)
    return to_decimal(transaction.gross_amount) + additional - refunded
