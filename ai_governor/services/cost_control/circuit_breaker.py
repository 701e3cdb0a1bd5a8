"""
Upstream Circuit Breaker

Stops issuing calls to a failing upstream after a run of consecutive
failures, for a fixed cooldown. Two states only:

- closed: open_until == 0, or the cooldown has elapsed
- open:   open_until is in the future

There is no half-open trial call. Once the cooldown is over, the first
is_open() check closes the breaker and clears the failure count.
"""

import threading
import time
from typing import Callable, Optional

import structlog

from ai_governor.services.errors import GovernorError

logger = structlog.get_logger(__name__)


class CircuitOpenError(GovernorError):
    """Raised when a call is rejected because the breaker is open."""

    def __init__(self, open_until: float, operation_name: Optional[str] = None):
        self.open_until = open_until
        super().__init__(
            f"[{operation_name}] circuit breaker active",
            operation_name=operation_name
        )


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker with a fixed cooldown.

    Threshold and cooldown are passed per call so they follow live config.

    Usage:
        breaker = CircuitBreaker()
        if breaker.is_open():
            raise CircuitOpenError(breaker.open_until, "claude.complete")
        try:
            result = await call()
            breaker.record_success()
        except Exception:
            breaker.record_failure(threshold=5, cooldown_seconds=300)
    """

    def __init__(self, name: str = "ai_upstream", clock: Callable[[], float] = time.time):
        self.name = name
        self.failure_count = 0
        self.open_until = 0.0
        self._clock = clock
        self._lock = threading.Lock()

    def is_open(self) -> bool:
        """
        Check the breaker, closing it if the cooldown has elapsed.

        Returns:
            True while the cooldown is running (calls must be blocked).
        """
        with self._lock:
            if not self.open_until:
                return False
            if self._clock() < self.open_until:
                return True
            self.open_until = 0.0
            self.failure_count = 0

        logger.info("circuit_breaker_closed", breaker=self.name)
        return False

    def record_success(self) -> None:
        """Clear the consecutive failure count."""
        with self._lock:
            self.failure_count = 0

    def record_failure(
        self, threshold: int, cooldown_seconds: float, reason: Optional[str] = None
    ) -> bool:
        """
        Count one failure and trip the breaker when the threshold is reached.

        Args:
            threshold: Consecutive failures that open the breaker (floor of 1).
            cooldown_seconds: How long the breaker stays open once tripped.
            reason: Error that caused this failure, logged if it trips the breaker.

        Returns:
            True if this failure opened the breaker.
        """
        with self._lock:
            self.failure_count += 1
            failures = self.failure_count

        if failures >= max(1, threshold):
            return self.trip(cooldown_seconds, reason=reason)
        return False

    def trip(self, cooldown_seconds: float, reason: Optional[str] = None) -> bool:
        """
        Open the breaker for cooldown_seconds.

        A trip while already open is a no-op and never extends the cooldown.

        Returns:
            True if the breaker was opened by this call.
        """
        with self._lock:
            now = self._clock()
            if self.open_until and now < self.open_until:
                return False
            self.open_until = now + cooldown_seconds
            failures = self.failure_count

        logger.warning(
            "circuit_breaker_opened",
            breaker=self.name,
            failure_count=failures,
            cooldown_ms=int(cooldown_seconds * 1000),
            reason=reason
        )
        return True

    @property
    def state(self) -> str:
        """Current state name, without the lazy close side effect of is_open()."""
        if self.open_until and self._clock() < self.open_until:
            return "open"
        return "closed"

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self.name!r}, state={self.state}, "
            f"failure_count={self.failure_count})"
        )
