"""
Tests for the settlement request workflow and settlement lifecycle.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
import logging

import pytest
from sqlalchemy.exc import OperationalError

from voltdine.core.exceptions import (
    AmountMismatch,
    ConsistencyViolation,
    MissingBankDetails,
    NoEligibleTransactions,
    NotFoundError,
    OverlappingSettlementExists,
    TransientStorageError,
    ValidationError,
)
from voltdine.core.utils import retry_transient
from voltdine.models import (
    ChargingSession,
    FoodOrder,
    Settlement,
    SettlementRequestType,
    SettlementStatus,
    TransactionSettlementStatus,
    Vendor,
)
from voltdine.services.balance_service import get_balance
from voltdine.services.settlement_service import (
    advance_settlement,
    get_settlement_history,
    release_settlement_lock,
    request_settlement,
)

NOW = datetime(2024, 1, 8, 9, 30, tzinfo=timezone.utc)
DAY = date(2024, 1, 5)


@pytest.fixture
def two_sales(vendor, make_charging, make_food):
    """A 205 charging session (200 net) and a 100 food order on 2024-01-05."""
    charging = make_charging(vendor, 205, end_time=datetime(2024, 1, 5, 10, 0))
    food = make_food(vendor, 100, completed_at=datetime(2024, 1, 5, 13, 0))
    return charging, food


def test_request_settlement_claims_eligible_transactions(db, vendor, two_sales):
    charging, food = two_sales

    settlement = request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)

    assert settlement.status == SettlementStatus.PENDING
    assert settlement.amount == Decimal("300.00")
    assert settlement.request_type == SettlementRequestType.URGENT
    assert settlement.settlement_code.startswith("STL")
    assert settlement.transaction_ids == [charging.id]
    assert settlement.order_ids == [food.id]
    assert settlement.bank_details["account_number"] == "001234567890"
    assert settlement.details["transaction_date"] == "2024-01-05"
    assert settlement.details["is_for_past_date"] is True
    assert settlement.details["breakdown"]["charging_station_amount"] == "200.00"
    assert settlement.details["breakdown"]["restaurant_orders"] == 1

    db.expire_all()
    for transaction in (db.get(ChargingSession, charging.id), db.get(FoodOrder, food.id)):
        assert transaction.settlement_status == TransactionSettlementStatus.INCLUDED_IN_SETTLEMENT
        assert transaction.settlement_id == settlement.id
        assert transaction.settlement_requested_for == "2024-01-05"


def test_claim_does_not_move_charging_completion_time(db, vendor, make_charging):
    """Sessions without an end time complete at updated_at, which the claim must keep."""
    session = make_charging(vendor, 105, end_time=None)
    session.updated_at = datetime(2024, 1, 5, 18, 0)
    db.commit()

    request_settlement(db, vendor.id, "100", target_date=DAY, now=NOW)

    db.expire_all()
    assert db.get(ChargingSession, session.id).updated_at == datetime(2024, 1, 5, 18, 0)


def test_overlapping_request_is_rejected(db, vendor, two_sales):
    request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)

    with pytest.raises(OverlappingSettlementExists) as exc_info:
        request_settlement(
            db, vendor.id, "0.01",
            period_start=date(2024, 1, 1), period_end=date(2024, 1, 10), now=NOW
        )

    assert exc_info.value.expected_amount == Decimal("0")
    assert db.query(Settlement).count() == 1


def test_no_transaction_is_claimed_twice(db, vendor, two_sales, make_food):
    first = request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)
    make_food(vendor, 40, completed_at=datetime(2024, 1, 6, 12, 0))

    second = request_settlement(db, vendor.id, "40", target_date=date(2024, 1, 6), now=NOW)

    claimed_first = set(first.transaction_ids) | {("food", i) for i in first.order_ids}
    claimed_second = set(second.transaction_ids) | {("food", i) for i in second.order_ids}
    assert not claimed_first & claimed_second
    assert second.amount == Decimal("40.00")


def test_consecutive_days_in_vendor_timezone(db, vendor, make_charging, make_food):
    """Asia/Kolkata days start at 18:30 UTC the evening before."""
    vendor.reporting_timezone = "Asia/Kolkata"
    db.commit()
    late_charge = make_charging(vendor, 105, end_time=datetime(2024, 1, 5, 17, 0))
    after_midnight = make_food(vendor, 40, completed_at=datetime(2024, 1, 5, 19, 0))

    first = request_settlement(db, vendor.id, "100", target_date=DAY, now=NOW)
    second = request_settlement(db, vendor.id, "40", target_date=date(2024, 1, 6), now=NOW)

    assert first.period_start == datetime(2024, 1, 4, 18, 30)
    assert first.period_end == datetime(2024, 1, 5, 18, 30)
    assert first.transaction_ids == [late_charge.id] and first.order_ids == []
    assert second.period_start == first.period_end
    assert second.order_ids == [after_midnight.id] and second.transaction_ids == []


def test_whole_second_period_end_does_not_block_next_day(db, vendor, make_charging, make_food):
    """Bounds as stored by columns without fractional seconds."""
    make_charging(vendor, 105, end_time=datetime(2024, 1, 5, 10, 0))
    at_midnight = make_food(vendor, 40, completed_at=datetime(2024, 1, 6))
    db.add(Settlement(
        settlement_code="STLJAN05", vendor_id=vendor.id, amount=Decimal("0"),
        status=SettlementStatus.PENDING, settlement_date=DAY,
        period_start=datetime(2024, 1, 5), period_end=datetime(2024, 1, 6),
        transaction_ids=[], order_ids=[], bank_details={},
    ))
    db.commit()

    next_day = request_settlement(db, vendor.id, "40", target_date=date(2024, 1, 6), now=NOW)
    assert next_day.order_ids == [at_midnight.id]
    assert next_day.period_end.microsecond == 0

    with pytest.raises(OverlappingSettlementExists):
        request_settlement(db, vendor.id, "100", target_date=DAY, now=NOW)


def test_amount_is_conserved_within_tolerance(db, vendor, two_sales):
    settlement = request_settlement(db, vendor.id, "300.01", target_date=DAY, now=NOW)
    assert settlement.amount == Decimal("300.00")


def test_amount_mismatch_reports_expected_amount(db, vendor, two_sales):
    with pytest.raises(AmountMismatch) as exc_info:
        request_settlement(db, vendor.id, "310", target_date=DAY, now=NOW)

    assert exc_info.value.expected_amount == Decimal("300")
    assert exc_info.value.to_dict()["expected_amount"] == "300.00"
    assert db.query(Settlement).count() == 0
    db.expire_all()
    assert db.query(ChargingSession).first().settlement_status == TransactionSettlementStatus.PENDING


def test_no_eligible_transactions(db, vendor):
    with pytest.raises(NoEligibleTransactions) as exc_info:
        request_settlement(db, vendor.id, "10", target_date=DAY, now=NOW)
    assert exc_info.value.expected_amount == Decimal("0")


def test_missing_bank_details(db, make_charging):
    vendor = Vendor(name="No Bank")
    db.add(vendor)
    db.commit()
    make_charging(vendor, 105, end_time=datetime(2024, 1, 5, 10, 0))

    with pytest.raises(MissingBankDetails) as exc_info:
        request_settlement(db, vendor.id, "100", target_date=DAY, now=NOW)
    assert exc_info.value.expected_amount == Decimal("100")


@pytest.mark.parametrize("amount", ["-5", "0", "abc", "NaN"])
def test_invalid_amount(db, vendor, amount):
    with pytest.raises(ValidationError):
        request_settlement(db, vendor.id, amount, target_date=DAY, now=NOW)


def test_period_must_be_ordered(db, vendor):
    with pytest.raises(ValidationError):
        request_settlement(
            db, vendor.id, "10",
            period_start=date(2024, 1, 10), period_end=date(2024, 1, 1), now=NOW
        )


def test_date_or_period_required(db, vendor):
    with pytest.raises(ValidationError):
        request_settlement(db, vendor.id, "10", now=NOW)


def test_unknown_vendor(db):
    with pytest.raises(NotFoundError):
        request_settlement(db, 999, "10", target_date=DAY, now=NOW)


def test_period_request_covers_several_days(db, vendor, make_charging):
    make_charging(vendor, 105, end_time=datetime(2024, 1, 2, 10, 0))
    make_charging(vendor, 55, end_time=datetime(2024, 1, 4, 10, 0))
    make_charging(vendor, 1005, end_time=datetime(2024, 1, 9, 10, 0))

    settlement = request_settlement(
        db, vendor.id, "150",
        period_start=date(2024, 1, 1), period_end=date(2024, 1, 7), now=NOW
    )

    assert settlement.amount == Decimal("150.00")
    assert len(settlement.transaction_ids) == 2
    assert settlement.details["transaction_date"] == "2024-01-01..2024-01-07"


def test_double_claim_halts_vendor(db, vendor, two_sales):
    """A transaction that looks unclaimed but sits in an active settlement locks the vendor."""
    charging, _ = two_sales
    stray = Settlement(
        settlement_code="STLSTRAY", vendor_id=vendor.id, amount=Decimal("200"),
        status=SettlementStatus.PENDING, settlement_date=date(2023, 12, 1),
        period_start=datetime(2023, 12, 1), period_end=datetime(2023, 12, 1, 23, 59),
        transaction_ids=[charging.id], order_ids=[], bank_details={},
    )
    db.add(stray)
    db.commit()

    with pytest.raises(ConsistencyViolation):
        request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)

    db.expire_all()
    locked = db.get(Vendor, vendor.id)
    assert locked.settlement_locked is True
    assert "STLSTRAY" in locked.settlement_lock_reason
    assert db.query(Settlement).count() == 1

    with pytest.raises(ConsistencyViolation):
        request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)

    stray.status = SettlementStatus.REJECTED
    db.commit()
    release_settlement_lock(db, vendor.id)
    settlement = request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)
    assert settlement.amount == Decimal("300.00")


def test_failed_halt_still_reports_the_violation(db, vendor, two_sales, monkeypatch, caplog):
    charging, _ = two_sales
    db.add(Settlement(
        settlement_code="STLSTRAY", vendor_id=vendor.id, amount=Decimal("200"),
        status=SettlementStatus.PENDING, settlement_date=date(2023, 12, 1),
        period_start=datetime(2023, 12, 1), period_end=datetime(2023, 12, 2),
        transaction_ids=[charging.id], order_ids=[], bank_details={},
    ))
    db.commit()

    def failing_commit():
        raise OperationalError("UPDATE vendors", {}, Exception("lock wait timeout"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with caplog.at_level(logging.CRITICAL, logger="voltdine.services.settlement_service"):
        with pytest.raises(ConsistencyViolation):
            request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)
    monkeypatch.undo()

    db.expire_all()
    assert db.get(Vendor, vendor.id).settlement_locked is False
    assert any("Could not halt settlements" in r.getMessage() for r in caplog.records)


def test_rejected_settlement_makes_transactions_eligible_again(db, vendor, two_sales):
    first = request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)
    advance_settlement(db, first.id, "rejected", processing_notes="Bank details invalid")

    second = request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)

    assert second.id != first.id
    assert second.transaction_ids == first.transaction_ids


def test_settlement_lifecycle_and_balance(db, vendor, two_sales):
    settlement = request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)

    advance_settlement(db, settlement.id, "processing")
    with pytest.raises(ValidationError):
        advance_settlement(db, settlement.id, "completed")
    completed = advance_settlement(db, settlement.id, "completed", payment_reference="UTR123", now=NOW)

    assert completed.status == SettlementStatus.COMPLETED
    assert completed.payment_reference == "UTR123"
    assert completed.processed_at == datetime(2024, 1, 8, 9, 30)

    balance = get_balance(db, vendor.id)
    assert balance["total_balance"] == Decimal("300")
    assert balance["total_withdrawn"] == Decimal("300.00")
    assert balance["pending_withdrawal"] == Decimal("0")
    assert balance["total_balance"] == balance["total_withdrawn"] + balance["pending_withdrawal"]

    with pytest.raises(NoEligibleTransactions):
        request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)


def test_terminal_settlements_do_not_move(db, vendor, two_sales):
    settlement = request_settlement(db, vendor.id, "300", target_date=DAY, now=NOW)
    advance_settlement(db, settlement.id, "rejected")

    with pytest.raises(ValidationError):
        advance_settlement(db, settlement.id, "processing")
    with pytest.raises(ValidationError):
        advance_settlement(db, settlement.id, "settled")
    with pytest.raises(NotFoundError):
        advance_settlement(db, 999, "processing")


def test_settlement_history_is_paginated(db, vendor, make_charging):
    for day in (2, 3, 4):
        make_charging(vendor, 105, end_time=datetime(2024, 1, day, 10, 0))
        request_settlement(db, vendor.id, "100", target_date=date(2024, 1, day),
                           now=datetime(2024, 1, day + 1, tzinfo=timezone.utc))

    items, total = get_settlement_history(db, vendor.id, page=1, limit=2)
    assert total == 3
    assert [s.settlement_date for s in items] == [date(2024, 1, 4), date(2024, 1, 3)]

    items, _ = get_settlement_history(db, vendor.id, page=2, limit=2)
    assert [s.settlement_date for s in items] == [date(2024, 1, 2)]

    items, total = get_settlement_history(db, vendor.id, status="completed")
    assert total == 0 and items == []

    with pytest.raises(ValidationError):
        get_settlement_history(db, vendor.id, limit=0)
    with pytest.raises(ValidationError):
        get_settlement_history(db, vendor.id, status="unknown")


def test_balance_identity_holds_with_negative_net(db, vendor, make_food, add_adjustment):
    order = make_food(vendor, 20, completed_at=datetime(2024, 1, 5, 10, 0))
    add_adjustment(order, "refund", 50)

    balance = get_balance(db, vendor.id)

    assert balance["total_restaurant_balance"] == Decimal("-30")
    assert balance["total_balance"] == balance["total_withdrawn"] + balance["pending_withdrawal"]


def test_retry_transient_retries_then_succeeds():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise TransientStorageError("database is busy")
        return "ok"

    assert retry_transient(flaky, attempts=3, backoff=0) == "ok"
    assert len(calls) == 3


def test_retry_transient_gives_up():
    def always_down():
        raise TransientStorageError("database is down")

    with pytest.raises(TransientStorageError):
        retry_transient(always_down, attempts=2, backoff=0)
