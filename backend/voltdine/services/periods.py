"""
Reporting periods: calendar days and months in a vendor's timezone.

Timestamps are stored as naive UTC; every helper here converts between that
storage format and local calendar days.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from voltdine.core.config import settings

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def vendor_timezone(vendor) -> ZoneInfo:
    """Vendor's reporting timezone, falling back to the configured default."""
    name = (vendor.reporting_timezone if vendor else None) or settings.REPORTING_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown reporting timezone {name!r}; using {settings.REPORTING_TIMEZONE}")
        return ZoneInfo(settings.REPORTING_TIMEZONE)


def as_aware_utc(moment: datetime) -> datetime:
    """Stored datetimes are naive UTC; attach the zone (or convert aware ones)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_storage(moment: datetime) -> datetime:
    """Aware datetime -> naive UTC, the format the database stores."""
    return as_aware_utc(moment).replace(tzinfo=None)


def local_day(moment: datetime, tz: ZoneInfo) -> date:
    """Calendar day a stored (naive UTC) timestamp falls on in the given zone."""
    return as_aware_utc(moment).astimezone(tz).date()


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    """Start of a local calendar day as naive UTC."""
    return to_storage(datetime.combine(day, time.min, tzinfo=tz))


def day_bounds(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """
    [start, end) of a local calendar day as naive UTC datetimes.

    The end is the next local midnight, so both bounds are whole seconds and
    survive columns that drop fractional seconds.
    """
    return local_midnight(day, tz), local_midnight(day + timedelta(days=1), tz)


def date_range_bounds(first_day: date, last_day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """[start of first_day, start of the day after last_day) as naive UTC datetimes."""
    return local_midnight(first_day, tz), local_midnight(last_day + timedelta(days=1), tz)


def resolve_period(
    target_date: Optional[date],
    tz: ZoneInfo,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Reporting window for an analytics request.

    A specific date selects that local calendar day; no date selects the
    current local calendar month.
    """
    if target_date is not None:
        return day_bounds(target_date, tz)

    today = as_aware_utc(now or utcnow()).astimezone(tz).date()
    first = today.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return date_range_bounds(first, next_month - timedelta(days=1), tz)


def day_range(last_day: date, days: int) -> List[date]:
    """The `days` calendar days ending at last_day, ascending."""
    return [last_day - timedelta(days=offset) for offset in range(days - 1, -1, -1)]

