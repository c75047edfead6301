"""
Analytics service for vendor revenue dashboards.

Builds the per-period revenue view (split by source and by settlement state),
the all-time balance, and a gap-free daily timeline merged from three
independent aggregations.
"""
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from voltdine.core.config import settings
from voltdine.core.exceptions import NotFoundError
from voltdine.core.utils import storage_errors
from voltdine.models.settlement import Settlement
from voltdine.models.transaction import (
    ChargingStatus,
    OrderStatus,
    PaymentStatus,
    TransactionKind,
    TRANSACTION_MODELS,
)
from voltdine.models.vendor import Vendor
from voltdine.services.balance_service import get_balance
from voltdine.services.ledger_queries import (
    get_settlements_by_ids,
    get_vendor,
    list_active_settlements,
    list_completed_transactions,
    list_transactions_created_since,
)
from voltdine.services.periods import (
    as_aware_utc,
    date_range_bounds,
    day_range,
    local_day,
    resolve_period,
    utcnow,
    vendor_timezone,
)
from voltdine.services.revenue_service import net_revenue, sum_net_revenue
from voltdine.services.settlement_status import resolve_settlement_status, split_by_status

logger = logging.getLogger(__name__)

# Statuses that will never turn into revenue
_DEAD_STATUSES = {
    ChargingStatus.CANCELLED.value,
    ChargingStatus.EXPIRED.value,
    OrderStatus.CANCELLED.value,
}
_COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Pure aggregation pipeline
# ---------------------------------------------------------------------------

def bucket_by_day(
    items: Iterable,
    moment_of: Callable,
    value_of: Callable,
    tz: ZoneInfo,
) -> Dict[date, Decimal]:
    """Sum value_of(item) per local calendar day of moment_of(item)."""
    buckets: Dict[date, Decimal] = defaultdict(lambda: Decimal(0))
    for item in items:
        moment = moment_of(item)
        if moment is None:
            continue
        buckets[local_day(moment, tz)] += value_of(item)
    return dict(buckets)


def merge_daily_series(
    actual: Dict[date, Decimal],
    estimated: Dict[date, Decimal],
    counts: Dict[date, int],
    days: Optional[List[date]] = None,
) -> List[dict]:
    """
    Full outer join of the three daily series on (year, month, day).

    Missing values are zero-filled. When days is given every day in that
    window gets exactly one entry and keys outside it are dropped.
    """
    keys = set(actual) | set(estimated) | set(counts)
    if days:
        keys |= set(days)
        first, last = min(days), max(days)
        keys = {k for k in keys if first <= k <= last}

    merged = []
    for day in sorted(keys):
        revenue = actual.get(day, Decimal(0))
        merged.append({
            "year": day.year,
            "month": day.month,
            "day": day.day,
            "date": day.isoformat(),
            "revenue": revenue,
            "actual_revenue": revenue,
            "estimated_revenue": estimated.get(day, Decimal(0)),
            "total_bookings": int(counts.get(day, 0)),
        })
    return merged


def _status_value(transaction) -> str:
    status = transaction.status
    return status.value if hasattr(status, "value") else str(status)


def is_estimated_revenue(transaction) -> bool:
    """Paid for, not yet completed and still expected to complete."""
    status = _status_value(transaction)
    return (
        transaction.payment_status == PaymentStatus.PAID
        and status != _COMPLETED
        and status not in _DEAD_STATUSES
    )


def build_timeline(
    completed: List,
    created: List,
    tz: ZoneInfo,
    days: List[date],
) -> List[dict]:
    """Merge actual revenue, estimated revenue and booking counts into one timeline."""
    actual = bucket_by_day(completed, lambda t: t.completion_time, net_revenue, tz)
    estimated = bucket_by_day(
        [t for t in created if is_estimated_revenue(t)],
        lambda t: t.created_at,
        net_revenue,
        tz
    )
    counts = bucket_by_day(created, lambda t: t.created_at, lambda t: 1, tz)
    return merge_daily_series(actual, estimated, counts, days)


def _description(transaction) -> str:
    if transaction.kind == TransactionKind.CHARGING:
        return "EV Charging Session"
    return f"Restaurant Order ({transaction.item_count or 0} items)"


def transaction_row(transaction, settlement_status) -> dict:
    """Flat, display-ready view of one completed transaction."""
    is_charging = transaction.kind == TransactionKind.CHARGING
    return {
        "id": transaction.id,
        "kind": transaction.kind.value,
        "reference": transaction.reference,
        "customer_name": transaction.customer_name or "Walk-in Customer",
        "location_name": (
            transaction.station_name if is_charging else transaction.restaurant_name
        ) or ("Unknown Station" if is_charging else "Unknown Restaurant"),
        "completed_at": transaction.completion_time,
        "status": _COMPLETED,
        "settlement_status": settlement_status.value,
        "amount": net_revenue(transaction),
        "description": _description(transaction),
    }


def _settlement_summary(settlement: Settlement) -> dict:
    return {
        "id": settlement.settlement_code,
        "requested_at": settlement.requested_at,
        "status": settlement.status.value,
        "amount": settlement.amount,
        "request_type": settlement.request_type.value,
    }


# ---------------------------------------------------------------------------
# Service entry points
# ---------------------------------------------------------------------------

def _load_vendor(db: Session, vendor_id: int) -> Vendor:
    vendor = get_vendor(db, vendor_id)
    if not vendor:
        raise NotFoundError("Vendor not found", {"vendor_id": vendor_id})
    return vendor


def _timeline_for(db: Session, vendor_id: int, tz: ZoneInfo, now: datetime, series_days: int) -> List[dict]:
    today = as_aware_utc(now).astimezone(tz).date()
    days = day_range(today, series_days)
    window_start, window_end = date_range_bounds(days[0], days[-1], tz)

    with storage_errors("timeline aggregation"):
        completed = []
        created = []
        for kind in TransactionKind:
            completed.extend(list_completed_transactions(db, vendor_id, kind, window_start, window_end))
            created.extend(list_transactions_created_since(db, vendor_id, kind, window_start))
    return build_timeline(completed, created, tz, days)


def get_transaction_analytics(
    db: Session,
    vendor_id: int,
    target_date: Optional[date] = None,
    now: Optional[datetime] = None,
    series_days: Optional[int] = None,
) -> dict:
    """
    Revenue analytics for one day (or the current month when no date is given).

    Returns daily_stats for the period, all-time overall_stats, info about
    active settlements overlapping the period, the rolling daily timeline and
    the period's completed transactions in chronological order.
    """
    now = now or utcnow()
    vendor = _load_vendor(db, vendor_id)
    tz = vendor_timezone(vendor)
    start, end = resolve_period(target_date, tz, now)

    with storage_errors("transaction analytics"):
        charging = list_completed_transactions(db, vendor_id, TransactionKind.CHARGING, start, end)
        food = list_completed_transactions(db, vendor_id, TransactionKind.FOOD, start, end)
        active = list_active_settlements(db, vendor_id)
        claimed_by = get_settlements_by_ids(db, [t.settlement_id for t in charging + food])

    charging_revenue = sum_net_revenue(charging)
    restaurant_revenue = sum_net_revenue(food)
    split = split_by_status(charging + food, active, claimed_by)

    overlapping = [s for s in active if s.overlaps(start, end)]
    transactions = sorted(
        (
            transaction_row(t, resolve_settlement_status(t, active, claimed_by))
            for t in charging + food
        ),
        key=lambda row: (row["completed_at"] or datetime.min, row["kind"], row["id"])
    )

    logger.debug(
        f"Analytics for vendor {vendor_id} {start}..{end}: "
        f"{len(charging)} charging, {len(food)} food"
    )

    return {
        "selected_date": (target_date or as_aware_utc(now).astimezone(tz).date()).isoformat(),
        "period_start": start,
        "period_end": end,
        "daily_stats": {
            "total_to_be_received": charging_revenue + restaurant_revenue,
            "charging_station_revenue": charging_revenue,
            "restaurant_revenue": restaurant_revenue,
            "payment_settled": split["settled"],
            "in_settlement_process": split["in_settlement_process"],
            "pending_settlement": split["pending_settlement"],
            "needs_settlement": target_date is not None and split["pending_settlement"] > 0,
        },
        "overall_stats": get_balance(db, vendor_id),
        "settlement_info": {
            "has_active_settlement": bool(overlapping),
            "settlement_requests": [_settlement_summary(s) for s in overlapping],
        },
        "timeline": _timeline_for(db, vendor_id, tz, now, series_days or settings.ANALYTICS_SERIES_DAYS),
        "transactions": transactions,
    }


def _count(db: Session, vendor_id: int, status: Optional[str] = None) -> int:
    total = 0
    for model in TRANSACTION_MODELS.values():
        query = db.query(func.count(model.id)).filter(model.vendor_id == vendor_id)
        if status is not None:
            query = query.filter(model.status == status)
        total += query.scalar() or 0
    return total


def _paid_revenue_with_status(db: Session, vendor_id: int, status: str) -> Decimal:
    total = Decimal(0)
    for model in TRANSACTION_MODELS.values():
        rows = db.query(model).filter(
            model.vendor_id == vendor_id,
            model.status == status,
            model.payment_status == PaymentStatus.PAID
        ).all()
        total += sum_net_revenue(rows)
    return total


def get_dashboard_stats(
    db: Session,
    vendor_id: int,
    now: Optional[datetime] = None,
    series_days: Optional[int] = None,
) -> dict:
    """Headline counts and revenue figures plus the rolling daily timeline."""
    now = now or utcnow()
    vendor = _load_vendor(db, vendor_id)
    tz = vendor_timezone(vendor)
    month_start, month_end = resolve_period(None, tz, now)

    with storage_errors("dashboard stats"):
        total = _count(db, vendor_id)
        completed = _count(db, vendor_id, "completed")
        confirmed = _count(db, vendor_id, "confirmed")
        pending = _count(db, vendor_id, "pending")

        monthly_revenue = Decimal(0)
        for kind in TransactionKind:
            monthly_revenue += sum_net_revenue(
                list_completed_transactions(db, vendor_id, kind, month_start, month_end)
            )
        confirmed_revenue = _paid_revenue_with_status(db, vendor_id, "confirmed")
        pending_revenue = _paid_revenue_with_status(db, vendor_id, "pending")

    balance = get_balance(db, vendor_id)

    return {
        "stats": {
            "total_bookings": total,
            "completed_bookings": completed,
            "confirmed_bookings": confirmed,
            "pending_bookings": pending,
            "monthly_revenue": monthly_revenue,
            "total_revenue": balance["total_balance"],
            "confirmed_revenue": confirmed_revenue,
            "pending_revenue": pending_revenue,
            "estimated_revenue": confirmed_revenue + pending_revenue,
            "conversion_rate": round(completed / total * 100, 1) if total > 0 else 0.0,
        },
        "daily_stats": _timeline_for(db, vendor_id, tz, now, series_days or settings.ANALYTICS_SERIES_DAYS),
        "vendor": {
            "name": vendor.name,
            "business_name": vendor.business_name,
        },
    }
