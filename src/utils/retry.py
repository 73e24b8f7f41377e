"""
Exponential backoff for transient MongoDB failures.

``calculate_backoff_delay`` is the one delay schedule used everywhere:
the change feed reconnect loop calls it directly and the
``retry_with_backoff`` decorator uses it between attempts.

Usage:
    from utils.retry import retry_database_operation

    @retry_database_operation(max_retries=3, base_delay=1.0)
    def ping(client):
        return client.admin.command("ping")
"""

import logging
import random
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
    WTimeoutError,
)

logger = logging.getLogger(__name__)

JITTER_FRACTION = 0.25
MIN_JITTERED_DELAY = 0.1

# Driver errors that mean "try again later"
TRANSIENT_PYMONGO_ERRORS: tuple[type[PyMongoError], ...] = (
    AutoReconnect,
    ConnectionFailure,
    NetworkTimeout,
    ServerSelectionTimeoutError,
    ExecutionTimeout,
    WTimeoutError,
)

# Server error labels that mark an operation as safe to retry
TRANSIENT_ERROR_LABELS = ("RetryableWriteError", "TransientTransactionError")

RetryCallback = Callable[[int, Exception, float], None]


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Delay before retry number ``attempt`` (0-based).

    ``base_delay * exponential_base ** attempt`` capped at ``max_delay``;
    with jitter the result is spread by +/-25% and never below 0.1s.

    Examples:
        >>> calculate_backoff_delay(3, jitter=False)
        8.0
        >>> calculate_backoff_delay(10, jitter=False)
        60.0
    """
    delay = min(base_delay * exponential_base ** attempt, max_delay)
    if not jitter:
        return delay

    spread = delay * JITTER_FRACTION
    return max(MIN_JITTERED_DELAY, delay + random.uniform(-spread, spread))


def is_retryable_db_exception(exception: Exception) -> bool:
    """
    True for transient failures: lost connections, server selection and
    network timeouts, and errors the server labelled retryable.
    Duplicate keys, validation and authorization failures are not.
    """
    if isinstance(exception, TRANSIENT_PYMONGO_ERRORS):
        return True
    if isinstance(exception, PyMongoError):
        return any(exception.has_error_label(label) for label in TRANSIENT_ERROR_LABELS)
    return isinstance(exception, (ConnectionError, TimeoutError))


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] | None = None,
    retry_if: Callable[[Exception], bool] | None = None,
    on_retry: RetryCallback | None = None,
):
    """
    Retry the decorated function on failure, sleeping with exponential backoff.

    An exception is retried when it is an instance of
    ``retryable_exceptions`` (any exception if None) and ``retry_if``
    (if given) accepts it. After ``max_retries`` retries the last
    exception propagates.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry in seconds
        max_delay: Delay cap in seconds
        exponential_base: Growth factor per retry
        jitter: Spread delays by +/-25%
        retryable_exceptions: Exception types eligible for a retry
        retry_if: Extra predicate an exception must pass
        on_retry: Called as ``on_retry(attempt, exception, delay)`` before
            each sleep; errors it raises are logged and ignored
    """
    def should_retry(exc: Exception) -> bool:
        if retryable_exceptions is not None and not isinstance(exc, retryable_exceptions):
            return False
        return retry_if is None or retry_if(exc)

    def decorator(func: Callable) -> Callable:
        name = getattr(func, "__name__", "function")

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not should_retry(e):
                        logger.error(f"Non-retryable error in {name}: {type(e).__name__}: {e}")
                        raise
                    if attempt >= max_retries:
                        logger.error(
                            f"{name} failed after {max_retries} retries: {type(e).__name__}: {e}"
                        )
                        raise

                    delay = calculate_backoff_delay(
                        attempt,
                        base_delay=base_delay,
                        max_delay=max_delay,
                        exponential_base=exponential_base,
                        jitter=jitter,
                    )
                    attempt += 1
                    logger.warning(
                        f"{name} failed ({type(e).__name__}: {e}); "
                        f"retry {attempt}/{max_retries} in {delay:.2f}s"
                    )

                    if on_retry is not None:
                        try:
                            on_retry(attempt, e, delay)
                        except Exception as callback_error:
                            logger.error(f"Error in retry callback: {callback_error}")

                    time.sleep(delay)

        return wrapper
    return decorator


def retry_database_operation(
    max_retries: int = 3,
    base_delay: float = 1.0,
    on_retry: RetryCallback | None = None,
):
    """
    ``retry_with_backoff`` restricted to transient database errors
    (see ``is_retryable_db_exception``); anything else fails at once.
    """
    return retry_with_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        retry_if=is_retryable_db_exception,
        on_retry=on_retry,
    )
