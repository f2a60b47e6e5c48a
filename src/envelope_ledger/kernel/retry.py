"""
Retry logic with exponential backoff for SQLite lock contention.

Only the SQLite store retries, and only on "database is locked" style
OperationalErrors. Domain operations are never retried.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from envelope_ledger.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_lock_error(exc: BaseException) -> bool:
    """True for sqlite3 errors caused by another connection holding the lock"""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention.

    SQLite uses file-based locking and can report "database is locked"
    when a second process (say, a second terminal) writes at the same time.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait_ms: Minimum wait time in milliseconds (default: 100)
        max_wait_ms: Maximum wait time in milliseconds (default: 1000)

    Returns:
        Decorated function that retries on lock errors

    Example:
        @retry_on_sqlite_lock()
        def batch_write(self, ops):
            ...
    """
    return retry(
        retry=retry_if_exception(is_lock_error),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )
