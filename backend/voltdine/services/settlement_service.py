"""
Settlement service: vendor payout requests and their lifecycle.

A request is validated against amounts recomputed on the server, checked for
overlap with the vendor's active settlements, then persisted together with the
claim on every included transaction in a single database transaction.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple
import logging
import secrets
import string

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from voltdine.core.config import settings
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
from voltdine.core.utils import quantize_money, storage_errors, to_decimal
from voltdine.models.settlement import Settlement, SettlementRequestType, SettlementStatus
from voltdine.models.transaction import TransactionKind, TransactionSettlementStatus
from voltdine.models.vendor import Vendor
from voltdine.services.periods import (
    as_aware_utc,
    date_range_bounds,
    utcnow,
    vendor_timezone,
)
from voltdine.services.ledger_queries import (
    get_settlements_by_ids,
    get_vendor,
    get_vendor_bank_details,
    list_active_settlements,
    list_completed_transactions,
    persist_settlement,
    update_transaction_settlement_fields,
)
from voltdine.services.revenue_service import sum_net_revenue
from voltdine.services.settlement_status import referenced_ids, resolve_settlement_status

logger = logging.getLogger(__name__)

# Externally driven transitions after creation
ALLOWED_TRANSITIONS = {
    SettlementStatus.PENDING: {SettlementStatus.PROCESSING, SettlementStatus.REJECTED},
    SettlementStatus.PROCESSING: {SettlementStatus.COMPLETED, SettlementStatus.REJECTED},
}

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_settlement_code(now: datetime) -> str:
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(4))
    return f"STL{int(as_aware_utc(now).timestamp() * 1000)}{suffix}"


def _parse_claimed_amount(claimed_amount) -> Decimal:
    try:
        amount = to_decimal(claimed_amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Amount must be a number", {"amount": str(claimed_amount)})
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be a positive number", {"amount": str(claimed_amount)})
    return amount


def _resolve_requested_days(
    target_date: Optional[date],
    period_start: Optional[date],
    period_end: Optional[date],
) -> Tuple[date, date]:
    if target_date is not None:
        if period_start is not None or period_end is not None:
            raise ValidationError("Provide either a date or a period, not both")
        return target_date, target_date
    if period_start is None or period_end is None:
        raise ValidationError("A date or a full period (start and end) is required")
    if period_start > period_end:
        raise ValidationError(
            "Period start must not be after period end",
            {"period_start": period_start.isoformat(), "period_end": period_end.isoformat()}
        )
    return period_start, period_end


def _parse_request_type(request_type) -> SettlementRequestType:
    try:
        return SettlementRequestType(request_type)
    except ValueError:
        raise ValidationError("Unknown request type", {"request_type": str(request_type)})


def check_ledger_consistency(vendor_id: int, active: List[Settlement], eligible: List) -> None:
    """
    Raise ConsistencyViolation when a transaction is claimed twice.

    Either two active settlements reference the same transaction, or a
    transaction that looks unclaimed is referenced by an active settlement.
    """
    seen: Dict[Tuple[TransactionKind, int], str] = {}
    for settlement in active:
        for kind in TransactionKind:
            for transaction_id in referenced_ids(settlement, kind):
                key = (kind, transaction_id)
                if key in seen:
                    raise ConsistencyViolation(
                        f"{kind.value} transaction {transaction_id} is referenced by active "
                        f"settlements {seen[key]} and {settlement.settlement_code}",
                        vendor_id=vendor_id,
                        details={"kind": kind.value, "transaction_id": transaction_id}
                    )
                seen[key] = settlement.settlement_code

    for transaction in eligible:
        key = (transaction.kind, transaction.id)
        if key in seen:
            raise ConsistencyViolation(
                f"{transaction.kind.value} transaction {transaction.id} is marked unclaimed "
                f"but referenced by active settlement {seen[key]}",
                vendor_id=vendor_id,
                details={"kind": transaction.kind.value, "transaction_id": transaction.id}
            )


def _halt_vendor(db: Session, vendor_id: int, violation: ConsistencyViolation) -> None:
    """
    Stop further settlement creation for the vendor until manually reconciled.

    A storage failure here is logged and left behind the violation, which the
    caller re-raises.
    """
    try:
        with storage_errors("settlement halt"):
            vendor = get_vendor(db, vendor_id)
            if vendor and vendor.settlement_locked:
                logger.warning(f"Settlement request refused for halted vendor {vendor_id}")
                return
            logger.critical(f"Ledger consistency violation for vendor {vendor_id}: {violation.message}")
            if vendor:
                vendor.settlement_locked = True
                vendor.settlement_lock_reason = violation.message[:500]
                db.commit()
    except (TransientStorageError, SQLAlchemyError) as exc:
        db.rollback()
        logger.critical(
            f"Could not halt settlements for vendor {vendor_id} after consistency violation "
            f"({violation.message}): {exc}"
        )


def _claim_label(first_day: date, last_day: date) -> str:
    if first_day == last_day:
        return first_day.isoformat()
    return f"{first_day.isoformat()}..{last_day.isoformat()}"


def _create_settlement(
    db: Session,
    vendor_id: int,
    claimed: Decimal,
    first_day: date,
    last_day: date,
    reason: Optional[str],
    request_type: SettlementRequestType,
    now: datetime,
) -> Settlement:
    """Validate and stage a settlement. Runs inside the caller's transaction."""
    vendor: Optional[Vendor] = get_vendor(db, vendor_id, for_update=True)
    if not vendor:
        raise NotFoundError("Vendor not found", {"vendor_id": vendor_id})
    if vendor.settlement_locked:
        raise ConsistencyViolation(
            "Settlement requests are halted for this vendor until the ledger is reconciled",
            vendor_id=vendor_id,
            details={"reason": vendor.settlement_lock_reason}
        )

    tz = vendor_timezone(vendor)
    start, end = date_range_bounds(first_day, last_day, tz)

    active = list_active_settlements(db, vendor_id)
    charging = list_completed_transactions(db, vendor_id, TransactionKind.CHARGING, start, end)
    food = list_completed_transactions(db, vendor_id, TransactionKind.FOOD, start, end)
    claimed_by = get_settlements_by_ids(db, [t.settlement_id for t in charging + food])

    def unclaimed(transactions):
        return [
            t for t in transactions
            if resolve_settlement_status(t, active, claimed_by) == TransactionSettlementStatus.PENDING
        ]

    eligible_charging = unclaimed(charging)
    eligible_food = unclaimed(food)
    eligible = eligible_charging + eligible_food
    check_ledger_consistency(vendor_id, active, eligible)

    charging_amount = sum_net_revenue(eligible_charging)
    restaurant_amount = sum_net_revenue(eligible_food)
    expected = charging_amount + restaurant_amount

    bank_details = get_vendor_bank_details(db, vendor_id)
    if not bank_details:
        raise MissingBankDetails(
            "Please add your bank details before requesting settlement",
            expected_amount=expected
        )

    overlapping = [s for s in active if s.overlaps(start, end)]
    if overlapping:
        raise OverlappingSettlementExists(
            "There is already an active settlement request for this date range",
            expected_amount=expected,
            details={"settlement_ids": [s.settlement_code for s in overlapping]}
        )

    if not eligible:
        raise NoEligibleTransactions(
            "No pending transactions found for the selected period",
            expected_amount=expected
        )

    if abs(expected - claimed) > settings.AMOUNT_TOLERANCE:
        raise AmountMismatch(
            "Amount mismatch. Please refresh and try again.",
            expected_amount=expected,
            details={
                "provided": str(claimed),
                "breakdown": {
                    "charging_station": str(charging_amount),
                    "restaurant": str(restaurant_amount),
                },
            }
        )

    today = as_aware_utc(now).astimezone(tz).date()
    claim_label = _claim_label(first_day, last_day)
    requested_at = as_aware_utc(now).replace(tzinfo=None)

    settlement = Settlement(
        settlement_code=generate_settlement_code(now),
        vendor_id=vendor_id,
        amount=quantize_money(expected),
        status=SettlementStatus.PENDING,
        request_type=request_type,
        settlement_date=first_day,
        period_start=start,
        period_end=end,
        transaction_ids=[t.id for t in eligible_charging],
        order_ids=[t.id for t in eligible_food],
        bank_details=bank_details,
        reason=reason or "Urgent settlement request",
        requested_at=requested_at,
        details={
            "transaction_date": claim_label,
            "requested_date": today.isoformat(),
            "is_for_past_date": last_day < today,
            "breakdown": {
                "charging_station_amount": str(charging_amount),
                "restaurant_amount": str(restaurant_amount),
                "charging_station_transactions": len(eligible_charging),
                "restaurant_orders": len(eligible_food),
            },
        },
    )
    settlement_id = persist_settlement(db, settlement)

    for kind, transactions in (
        (TransactionKind.CHARGING, eligible_charging),
        (TransactionKind.FOOD, eligible_food),
    ):
        ids = [t.id for t in transactions]
        updated = update_transaction_settlement_fields(
            db, kind, ids, settlement_id,
            TransactionSettlementStatus.INCLUDED_IN_SETTLEMENT,
            requested_at=requested_at,
            requested_for=claim_label
        )
        if updated != len(ids):
            raise ConsistencyViolation(
                f"Expected to claim {len(ids)} {kind.value} transactions, updated {updated}",
                vendor_id=vendor_id
            )
    return settlement


def request_settlement(
    db: Session,
    vendor_id: int,
    claimed_amount,
    target_date: Optional[date] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
    reason: Optional[str] = None,
    request_type=SettlementRequestType.URGENT,
    now: Optional[datetime] = None,
) -> Settlement:
    """
    Create a settlement for the vendor's unclaimed completed transactions.

    The vendor row is locked for the duration so concurrent requests for the
    same vendor serialize: the eligibility read, the overlap check and both
    writes commit or roll back together. Any rejection leaves storage as it
    was.
    """
    claimed = _parse_claimed_amount(claimed_amount)
    first_day, last_day = _resolve_requested_days(target_date, period_start, period_end)
    kind = _parse_request_type(request_type)
    now = now or utcnow()

    try:
        with storage_errors("settlement request"):
            settlement = _create_settlement(
                db, vendor_id, claimed, first_day, last_day, reason, kind, now
            )
            db.commit()
    except ConsistencyViolation as exc:
        db.rollback()
        _halt_vendor(db, vendor_id, exc)
        raise
    except Exception as exc:
        db.rollback()
        if isinstance(exc, (AmountMismatch, NoEligibleTransactions,
                            OverlappingSettlementExists, MissingBankDetails)):
            logger.warning(f"Settlement request rejected for vendor {vendor_id}: {exc.code} ({exc.message})")
        raise

    with storage_errors("settlement reload"):
        db.refresh(settlement)
    logger.info(
        f"Settlement {settlement.settlement_code} created for vendor {vendor_id}: "
        f"{settlement.amount} over {settlement.transaction_count} transactions"
    )
    return settlement


def advance_settlement(
    db: Session,
    settlement_id: int,
    new_status,
    payment_reference: Optional[str] = None,
    processing_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Settlement:
    """
    Move a settlement along pending -> processing -> completed, or reject it.

    Transaction rows are left untouched; their displayed status follows from
    the settlement's status at read time.
    """
    try:
        target = SettlementStatus(new_status)
    except ValueError:
        raise ValidationError("Unknown settlement status", {"status": str(new_status)})

    try:
        with storage_errors("settlement status update"):
            settlement = db.query(Settlement).filter(
                Settlement.id == settlement_id
            ).with_for_update().first()
            if not settlement:
                raise NotFoundError("Settlement not found", {"settlement_id": settlement_id})

            if target not in ALLOWED_TRANSITIONS.get(settlement.status, set()):
                raise ValidationError(
                    f"Cannot move settlement from {settlement.status.value} to {target.value}",
                    {"current": settlement.status.value, "requested": target.value}
                )
            if target == SettlementStatus.COMPLETED and not payment_reference:
                raise ValidationError("Payment reference is required to complete a settlement")

            previous = settlement.status
            settlement.status = target
            if payment_reference:
                settlement.payment_reference = payment_reference
            if processing_notes:
                settlement.processing_notes = processing_notes
            if target in (SettlementStatus.COMPLETED, SettlementStatus.REJECTED):
                settlement.processed_at = as_aware_utc(now or utcnow()).replace(tzinfo=None)
            db.commit()
    except Exception:
        db.rollback()
        raise

    with storage_errors("settlement reload"):
        db.refresh(settlement)
    logger.info(
        f"Settlement {settlement.settlement_code} moved {previous.value} -> {target.value}"
    )
    return settlement


def get_settlement_history(
    db: Session,
    vendor_id: int,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
) -> Tuple[List[Settlement], int]:
    """Paginated settlements for a vendor, newest first."""
    if page < 1:
        raise ValidationError("Page must be 1 or greater", {"page": page})
    if limit < 1 or limit > settings.SETTLEMENT_HISTORY_MAX_LIMIT:
        raise ValidationError(
            f"Limit must be between 1 and {settings.SETTLEMENT_HISTORY_MAX_LIMIT}",
            {"limit": limit}
        )

    query = db.query(Settlement).filter(Settlement.vendor_id == vendor_id)
    if status and status != "all":
        try:
            query = query.filter(Settlement.status == SettlementStatus(status))
        except ValueError:
            raise ValidationError("Unknown settlement status", {"status": status})

    with storage_errors("settlement history"):
        total = query.count()
        settlements = query.order_by(
            Settlement.requested_at.desc(), Settlement.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
    return settlements, total


def release_settlement_lock(db: Session, vendor_id: int) -> Vendor:
    """Re-enable settlement requests after the ledger has been reconciled by hand."""
    vendor = get_vendor(db, vendor_id)
    if not vendor:
        raise NotFoundError("Vendor not found", {"vendor_id": vendor_id})
    if vendor.settlement_locked:
        logger.warning(
            f"Releasing settlement lock for vendor {vendor_id} (was: {vendor.settlement_lock_reason})"
        )
    vendor.settlement_locked = False
    vendor.settlement_lock_reason = None
    db.commit()
    db.refresh(vendor)
    return vendor
