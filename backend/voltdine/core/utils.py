"""
Utility functions for the application.
"""
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar
from contextlib import contextmanager
from decimal import Decimal, ROUND_HALF_UP
import logging
import time

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError

from voltdine.core.config import settings
from voltdine.core.exceptions import TransientStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce DB numerics, ints and floats to Decimal; None becomes zero."""
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Any) -> Decimal:
    """Round to whole cents."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_response(data: Any, message: str = "Success") -> Dict[str, Any]:
    """Format API response."""
    return {
        "message": message,
        "data": data
    }


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver timeouts and dropped connections into TransientStorageError."""
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        logger.warning(f"Transient storage failure during {operation}: {exc}")
        raise TransientStorageError(f"Storage temporarily unavailable during {operation}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            logger.warning(f"Connection invalidated during {operation}: {exc}")
            raise TransientStorageError(f"Storage connection lost during {operation}") from exc
        raise


def retry_transient(
    func: Callable[[], T],
    attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    on_retry: Optional[Callable[[int, TransientStorageError], None]] = None,
) -> T:
    """
    Call func, retrying on TransientStorageError up to a small bound.

    Backoff is linear: attempt n sleeps n * backoff seconds before the next try.
    Any other exception propagates immediately.
    """
    attempts = attempts or settings.TRANSIENT_RETRY_ATTEMPTS
    backoff = settings.TRANSIENT_RETRY_BACKOFF if backoff is None else backoff

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except TransientStorageError as exc:
            if attempt >= attempts:
                logger.error(f"Giving up after {attempt} attempts: {exc.message}")
                raise
            logger.warning(f"Retrying after transient error (attempt {attempt}/{attempts}): {exc.message}")
            if on_retry:
                on_retry(attempt, exc)
            if backoff:
                time.sleep(backoff * attempt)
    raise RuntimeError("retry_transient called with no attempts")
