from __future__ import annotations
import logging
import random
import time
from typing import Callable, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_MARKERS = (
    "deadlock",
    "could not serialize",
    "serialization failure",
    "database is locked",
    "lock timeout",
)


def is_transient_db_error(exc: BaseException) -> bool:
    """Classify DB errors that are safe to retry.

    Tries to match by driver-specific exception classes if available, and
    falls back to message substring checks for portability across drivers.
    """
    orig = getattr(exc, "orig", exc)
    try:
        from psycopg2 import errors as pg_err  # type: ignore
    except ImportError:
        pg_err = None
    if pg_err is not None and isinstance(orig, (
        pg_err.DeadlockDetected,
        pg_err.SerializationFailure,
        pg_err.LockNotAvailable,
    )):
        return True

    msg = (str(orig) or "").lower()
    return any(m in msg for m in _TRANSIENT_MARKERS) or ("timeout" in msg and "statement" in msg)


def backoff_delay(attempt: int, base_delay: float, cap: float = 1.0) -> float:
    """base_delay * 2^(attempt-1) plus jitter, capped."""
    return min(cap, base_delay * (2 ** (attempt - 1)) + random.uniform(0, base_delay))


def retry_with_backoff(
    func: Callable[[], T],
    *,
    attempts: int = 5,
    base_delay: float = 0.05,
    classify: Callable[[BaseException], bool] = is_transient_db_error,
) -> T:
    """Execute callable with exponential backoff on transient DB errors.

    - Retries up to `attempts` times
    - Non-transient errors propagate on the first failure
    """
    last_exc: Optional[BaseException] = None
    for i in range(1, max(1, attempts) + 1):
        try:
            return func()
        except Exception as exc:
            last_exc = exc
            if not classify(exc) or i >= attempts:
                break
            delay = backoff_delay(i, base_delay)
            log.debug("transient db error (attempt %d/%d), retrying in %.3fs: %s", i, attempts, delay, exc)
            time.sleep(delay)
    if last_exc is not None:
        raise last_exc
