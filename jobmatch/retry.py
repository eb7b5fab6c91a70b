"""
Retries for SQLite writes that lose to a concurrent writer.

Catalog batches resolve skills on several threads at once. SQLite
serializes writers, and a writer that waits past the connection timeout
gets an OperationalError ('database is locked'). Those are retried with
exponential backoff; anything else (bad SQL, constraint violations)
propagates on the first attempt.
"""

import functools
import time
from typing import Callable, Iterator, Optional, Tuple, Type

from sqlalchemy.exc import OperationalError

LOCK_MESSAGES = (
    "database is locked",
    "database table is locked",
    "database is busy",
    "disk i/o error",
    "connection",
    "timeout",
)


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""


def backoff_delays(
    max_retries: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> Iterator[float]:
    """Yield the sleep before each retry: base, base*k, base*k^2... capped at max_delay."""
    delay = base_delay
    for _ in range(max_retries):
        yield min(delay, max_delay)
        delay *= exponential_base


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable] = None,
):
    """
    Decorator that re-runs a function when it raises one of ``exceptions``.

    Args:
        max_retries: Retries after the first attempt (0 = no retries)
        base_delay: Sleep before the first retry, in seconds
        max_delay: Upper bound for any single sleep
        exponential_base: Growth factor between sleeps
        exceptions: Exception types that may be retried
        retry_if: Predicate; exceptions it rejects are re-raised immediately
        on_retry: Callback ``on_retry(attempt, exception, delay)`` before each sleep

    Raises:
        RetryError: After the last attempt fails, chained to the final exception
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delays = backoff_delays(max_retries, base_delay, max_delay, exponential_base)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        raise
                    delay = next(delays, None)
                    if delay is None:
                        raise RetryError(f"Failed after {attempt} attempts: {e}") from e
                    if on_retry:
                        on_retry(attempt, e, delay)
                    time.sleep(delay)

        return wrapper
    return decorator


def is_transient_error(exception: Exception) -> bool:
    """
    True if the error looks like lock contention or a dropped connection.

    SQLAlchemy wraps the driver error; its message is checked through
    ``.orig`` when present.
    """
    cause = getattr(exception, "orig", None) or exception
    message = str(cause).lower()
    return any(text in message for text in LOCK_MESSAGES)


def retry_on_locked(max_retries: int = 5, base_delay: float = 0.05, on_retry: Optional[Callable] = None):
    """Retry a database write while SQLite reports the database as locked."""
    return exponential_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        exceptions=(OperationalError,),
        retry_if=is_transient_error,
        on_retry=on_retry,
    )
