"""
Reliability Utilities.

Includes the Circuit Breaker pattern (external document verification)
and bounded retry with exponential backoff (database round-trips).
"""

import time
import asyncio
import logging
from typing import Callable, Any, Tuple, Type

from sqlalchemy.exc import OperationalError, InterfaceError

from edrive.app.core.exceptions import TransportError

logger = logging.getLogger(__name__)

# DBAPI errors that mean "the backend could not be reached", not "the statement was wrong"
TRANSIENT_DB_ERRORS: Tuple[Type[BaseException], ...] = (OperationalError, InterfaceError)


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    If 'failure_threshold' failures occur within 'reset_timeout',
    the circuit opens and rejects calls for 'reset_timeout' seconds.
    """
    def __init__(self, failure_threshold: int = 5, reset_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.time() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError("Circuit is OPEN")

        try:
            result = await func(*args, **kwargs)
            if self.state == "HALF_OPEN":
                self.reset_state()
            return result
        except Exception:
            self.record_failure()
            raise

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.time()
        if self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit opened after %s failures", self.failures)
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ..."""
    return base_delay * (2 ** (attempt - 1))


async def retry_async(
    func: Callable,
    *args,
    attempts: int = 3,
    base_delay: float = 0.05,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_DB_ERRORS,
    on_retry: Callable = None,
    **kwargs
) -> Any:
    """
    Run an idempotent coroutine with bounded retries.

    Only exceptions in `retry_on` are retried; anything else propagates
    immediately. When every attempt fails, TransportError is raised.

    Args:
        func: Coroutine function to call
        attempts: Maximum number of calls
        base_delay: Delay before the second attempt, doubled each time
        retry_on: Exception types treated as transient
        on_retry: Optional coroutine function awaited after each failure
            (e.g. a session rollback) before sleeping
    """
    for attempt in range(1, attempts + 1):
        try:
            return await func(*args, **kwargs)
        except retry_on as exc:
            logger.warning(
                "Transient failure in %s (attempt %s/%s): %s",
                getattr(func, "__name__", func), attempt, attempts, exc
            )
            if on_retry is not None:
                await on_retry()
            if attempt < attempts:
                await asyncio.sleep(backoff_delay(attempt, base_delay))

    raise TransportError()
