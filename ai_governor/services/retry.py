"""
Retry Executor

Runs one upstream operation with bounded attempts and exponential backoff
(250ms, 500ms, 1s, ...). Guard checks (breaker, budgets) happen once per
governed call before the executor runs; the executor only reports each
attempt's outcome through the on_success / on_failure hooks.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from ai_governor.services.errors import GovernorError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

BASE_BACKOFF_SECONDS = 0.25


class RetriesExhausted(GovernorError):
    """Raised when every allowed attempt failed."""

    def __init__(
        self,
        operation_name: Optional[str],
        attempts: int,
        last_error: BaseException
    ):
        self.attempts = attempts
        self.last_error = last_error
        message = (
            f"[{operation_name}] failed after {attempts} attempts: "
            f"{error_message(last_error)}"
        )
        super().__init__(message, operation_name=operation_name)


def error_message(error: BaseException) -> str:
    """Message of an upstream error, falling back to its type name."""
    return str(error) or type(error).__name__


def backoff_delay(attempt: int) -> float:
    """
    Seconds to wait after a failed attempt.

    attempt 1 -> 0.25, attempt 2 -> 0.5, attempt 3 -> 1.0, ...
    """
    return BASE_BACKOFF_SECONDS * (2 ** (max(1, attempt) - 1))


class RetryExecutor:
    """
    Bounded retry loop around a zero-argument coroutine factory.

    The sleep is injectable so backoff can be asserted without real time
    passing; it only suspends the calling task.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int,
        operation_name: Optional[str] = None,
        on_success: Optional[Callable[[T, int, int], None]] = None,
        on_failure: Optional[Callable[[Exception, int, int], None]] = None,
    ) -> T:
        """
        Invoke operation until it succeeds or max_attempts are used up.

        Args:
            operation: Performs the upstream call.
            max_attempts: Attempt bound, coerced up to 1.
            operation_name: Used in the exhausted error message.
            on_success: Called with (result, attempt, duration_ms).
            on_failure: Called with (error, attempt, duration_ms).

        Returns:
            The operation's result.

        Raises:
            RetriesExhausted: After the last attempt failed (chained to it).
        """
        attempts = max(1, int(max_attempts or 1))

        for attempt in range(1, attempts + 1):
            started = time.perf_counter()
            try:
                result = await operation()
            except Exception as e:
                duration_ms = int((time.perf_counter() - started) * 1000)
                if on_failure is not None:
                    on_failure(e, attempt, duration_ms)
                if attempt >= attempts:
                    raise RetriesExhausted(operation_name, attempt, e) from e

                delay = backoff_delay(attempt)
                logger.debug(
                    "retry_scheduled",
                    operation=operation_name,
                    attempt=attempt,
                    delay_ms=int(delay * 1000)
                )
                await self._sleep(delay)
                continue

            duration_ms = int((time.perf_counter() - started) * 1000)
            if on_success is not None:
                on_success(result, attempt, duration_ms)
            return result

        # range() above always runs at least once
        raise AssertionError("unreachable")
