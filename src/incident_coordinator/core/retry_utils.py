"""
Retry loop for incident units of work.

An incident operation reads the incident, checks a guard, mutates it and
saves it. When the save loses a race against another writer the store raises
ConcurrencyConflict and the whole unit of work is run again, so the guard is
re-evaluated against the winner's state. Backoff between attempts grows
exponentially up to a cap.
"""

import logging
import asyncio
from typing import Awaitable, Callable, Iterator, List, Optional, TypeVar

from incident_coordinator.core.errors import ConcurrencyConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.01,
        max_delay: float = 0.5,
        exponential_base: float = 2.0,
        retryable_exceptions: Optional[List[type]] = None,
    ):
        """
        Args:
            max_attempts: Attempts in total, the first one included
            initial_delay: Seconds to wait before the second attempt
            max_delay: Upper bound for any single wait
            exponential_base: Growth factor between consecutive waits
            retryable_exceptions: Exception types worth another attempt.
                                 Defaults to ConcurrencyConflict only
        """
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retryable_exceptions = retryable_exceptions or [ConcurrencyConflict]

    def is_retryable(self, error: BaseException) -> bool:
        return any(isinstance(error, exc_type) for exc_type in self.retryable_exceptions)

    def delays(self) -> Iterator[float]:
        """Waits between consecutive attempts, one fewer than max_attempts."""
        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            yield delay
            delay = min(delay * self.exponential_base, self.max_delay)


def _conflict_fields(error: BaseException) -> dict:
    if isinstance(error, ConcurrencyConflict):
        return {
            "expected_version": error.expected_version,
            "actual_version": error.actual_version,
        }
    return {"error": str(error)}


async def retry_async(
    func: Callable[..., Awaitable[T]],
    config: RetryConfig,
    incident_id: Optional[str] = None,
    *args,
    **kwargs
) -> T:
    """
    Run an async unit of work until it succeeds or attempts run out.

    Args:
        func: The async unit of work
        config: Retry configuration
        incident_id: Incident the work targets, for logging
        *args: Positional arguments to pass to func
        **kwargs: Keyword arguments to pass to func

    Returns:
        What the first successful attempt returned

    Raises:
        Exception: A non-retryable error as soon as it happens, or the last
                   retryable one when no attempts remain
    """
    delays = config.delays()
    attempt = 0

    while True:
        attempt += 1
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if not config.is_retryable(e):
                raise

            delay = next(delays, None)
            if delay is None:
                logger.error(
                    "Incident write still conflicting after all attempts",
                    extra={
                        "incident_id": incident_id,
                        "function": func.__name__,
                        "attempts": attempt,
                        **_conflict_fields(e),
                    },
                )
                raise

            logger.warning(
                "Incident write conflicted, retrying against fresh state",
                extra={
                    "incident_id": incident_id,
                    "function": func.__name__,
                    "attempt": attempt,
                    "retry_delay": delay,
                    **_conflict_fields(e),
                },
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            logger.info(
                "Incident write succeeded after retry",
                extra={
                    "incident_id": incident_id,
                    "function": func.__name__,
                    "attempt": attempt,
                },
            )
        return result
