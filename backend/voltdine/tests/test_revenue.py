"""
Tests for net revenue calculation.
"""
from decimal import Decimal

from voltdine.models import (
    AdjustmentStatus,
    AdjustmentType,
    ChargingSession,
    FoodOrder,
    PaymentAdjustment,
)
from voltdine.services.revenue_service import (
    adjustment_totals,
    base_amount,
    customer_net_amount,
    display_amount,
    net_revenue,
    sum_net_revenue,
)


def _adjustment(adjustment_type, amount, status=AdjustmentStatus.PROCESSED):
    return PaymentAdjustment(type=adjustment_type, amount=Decimal(amount), status=status, reason="x")


def test_charging_session_pays_platform_fee():
    """Gross 100 with the fixed fee of 5 leaves 95 for the vendor."""
    session = ChargingSession(gross_amount=Decimal("100"))
    assert net_revenue(session) == Decimal("95")


def test_processed_adjustments_are_applied():
    session = ChargingSession(gross_amount=Decimal("100"))
    session.adjustments.append(_adjustment(AdjustmentType.ADDITIONAL_CHARGE, "20"))
    session.adjustments.append(_adjustment(AdjustmentType.REFUND, "10"))
    assert net_revenue(session) == Decimal("105")


def test_pending_and_rejected_adjustments_are_ignored():
    session = ChargingSession(gross_amount=Decimal("100"))
    session.adjustments.append(_adjustment(AdjustmentType.ADDITIONAL_CHARGE, "20"))
    session.adjustments.append(
        _adjustment(AdjustmentType.ADDITIONAL_CHARGE, "50", AdjustmentStatus.PENDING)
    )
    session.adjustments.append(
        _adjustment(AdjustmentType.REFUND, "30", AdjustmentStatus.REJECTED)
    )
    assert adjustment_totals(session) == (Decimal("20"), Decimal("0"))
    assert net_revenue(session) == Decimal("115")


def test_net_revenue_is_deterministic():
    session = ChargingSession(gross_amount=Decimal("42.50"))
    session.adjustments.append(_adjustment(AdjustmentType.REFUND, "2.50"))
    assert net_revenue(session) == net_revenue(session) == Decimal("35.00")


def test_explicit_merchant_amount_wins():
    session = ChargingSession(gross_amount=Decimal("100"), merchant_amount=Decimal("80"))
    assert base_amount(session) == Decimal("80")


def test_negative_merchant_amount_falls_back_to_fee_formula():
    session = ChargingSession(gross_amount=Decimal("100"), merchant_amount=Decimal("-1"))
    assert base_amount(session) == Decimal("95")


def test_base_amount_never_negative_for_tiny_sessions():
    session = ChargingSession(gross_amount=Decimal("3"))
    assert base_amount(session) == Decimal("0")


def test_food_order_keeps_full_gross():
    order = FoodOrder(gross_amount=Decimal("250"))
    assert net_revenue(order) == Decimal("250")


def test_large_refund_gives_negative_net_without_clamping():
    order = FoodOrder(gross_amount=Decimal("50"))
    order.adjustments.append(_adjustment(AdjustmentType.REFUND, "80"))
    assert net_revenue(order) == Decimal("-30")
    assert display_amount(net_revenue(order)) == Decimal("0")


def test_sum_net_revenue_mixes_kinds():
    transactions = [ChargingSession(gross_amount=Decimal("100")), FoodOrder(gross_amount=Decimal("40"))]
    assert sum_net_revenue(transactions) == Decimal("135")
    assert sum_net_revenue([]) == Decimal("0")


def test_customer_net_amount_ignores_platform_fee():
    session = ChargingSession(gross_amount=Decimal("100"))
    session.adjustments.append(_adjustment(AdjustmentType.ADDITIONAL_CHARGE, "15"))
    assert customer_net_amount(session) == Decimal("115")
