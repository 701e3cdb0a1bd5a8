"""
Usage Tracker

Rolling 24h token accounting for the shared upstream budget and for each
tenant's quota. Counters are in-memory only and reset on restart: this is a
soft cost-control signal, not a billing ledger.

A window is exactly 24h from the moment it was last reset, not aligned to a
calendar day.
"""

import math
import threading
import time
from dataclasses import dataclass, field
from numbers import Number
from typing import Any, Callable, Dict, Mapping, Optional

import structlog

from ai_governor.services.errors import GovernorError

logger = structlog.get_logger(__name__)

WINDOW_SECONDS = 24 * 60 * 60
GLOBAL_SCOPE_ID = "global"


class GlobalBudgetExhausted(GovernorError):
    """Raised when the shared daily token budget is used up."""

    def __init__(self, used: float, limit: int, operation_name: Optional[str] = None):
        self.used = used
        self.limit = limit
        message = (
            f"[{operation_name}] global token budget exhausted "
            f"(used {used:g}/{limit})"
        )
        super().__init__(message, operation_name=operation_name)


class TenantQuotaExhausted(GovernorError):
    """Raised when one tenant's daily token quota is used up."""

    def __init__(
        self,
        tenant_id: str,
        used: float,
        limit: int,
        operation_name: Optional[str] = None
    ):
        self.tenant_id = tenant_id
        self.used = used
        self.limit = limit
        message = (
            f"[{operation_name}][tenant={tenant_id}] quota exhausted "
            f"(used {used:g}/{limit})"
        )
        super().__init__(message, operation_name=operation_name)


def usage_units(usage: Any) -> float:
    """
    Normalize a reported usage into cost units.

    Accepts a plain number, or a mapping/object carrying ``total_tokens``
    or ``input_tokens`` + ``output_tokens`` (OpenAI and Anthropic shapes).
    Anything else, or a non-positive result, counts as 0.
    """
    if usage is None or isinstance(usage, bool):
        return 0

    if isinstance(usage, Number):
        units = usage
    else:
        total = _read_field(usage, "total_tokens")
        if _is_positive(total):
            units = total
        else:
            units = (
                _read_field(usage, "input_tokens")
                + _read_field(usage, "output_tokens")
            )

    return units if _is_positive(units) else 0


def _read_field(usage: Any, name: str) -> float:
    if isinstance(usage, Mapping):
        value = usage.get(name)
    else:
        value = getattr(usage, name, None)
    return value if _is_positive(value) else 0


def _is_positive(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Number):
        return False
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False


@dataclass
class UsageScope:
    """Consumed units and window boundary for "global" or one tenant."""
    scope_id: str
    units_consumed: float = 0
    window_reset_at: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class UsageTracker:
    """
    Per-scope usage counters with sliding 24h windows.

    Usage:
        tracker = UsageTracker()
        scope = tracker.ensure_scope("acme")
        tracker.reset_if_window_elapsed(scope)
        if not tracker.is_over_budget(scope, limit=100_000):
            ...
            tracker.record_usage(scope, response.usage)
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._tenants: Dict[str, UsageScope] = {}
        self._tenants_lock = threading.Lock()
        self.global_scope = self._new_scope(GLOBAL_SCOPE_ID)

    def _new_scope(self, scope_id: str) -> UsageScope:
        return UsageScope(scope_id=scope_id, window_reset_at=self._clock() + WINDOW_SECONDS)

    def ensure_scope(self, tenant_id: str) -> UsageScope:
        """Return the tenant's scope, creating it on first use."""
        scope = self._tenants.get(tenant_id)
        if scope is not None:
            return scope

        with self._tenants_lock:
            scope = self._tenants.get(tenant_id)
            if scope is None:
                scope = self._new_scope(tenant_id)
                self._tenants[tenant_id] = scope
                logger.debug("usage_scope_created", tenant=tenant_id)
        return scope

    def reset_if_window_elapsed(self, scope: UsageScope) -> bool:
        """
        Start a fresh window once the current one has elapsed.

        Returns:
            True if the scope was reset.
        """
        now = self._clock()
        with scope.lock:
            if now < scope.window_reset_at:
                return False
            previous = scope.units_consumed
            scope.units_consumed = 0
            scope.window_reset_at = now + WINDOW_SECONDS

        logger.info("usage_window_reset", scope=scope.scope_id, previous_units=previous)
        return True

    def record_usage(self, scope: UsageScope, usage: Any) -> float:
        """
        Add reported usage to the scope.

        Zero, missing or malformed usage is ignored (never an error).

        Returns:
            Units actually recorded.
        """
        units = usage_units(usage)
        if not units:
            return 0

        with scope.lock:
            scope.units_consumed += units
        return units

    def is_over_budget(self, scope: UsageScope, limit: Optional[int]) -> bool:
        """True when a positive limit is set and already reached."""
        if not _is_positive(limit):
            return False
        with scope.lock:
            return scope.units_consumed >= limit

    def remaining(self, scope: UsageScope, limit: Optional[int]) -> Optional[float]:
        """Units left in the window, or None when unlimited."""
        if not _is_positive(limit):
            return None
        return max(0, limit - scope.units_consumed)

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        """Plain-dict view of every scope, global first."""
        scopes = [self.global_scope] + list(self._tenants.values())
        return {
            scope.scope_id if scope is self.global_scope else f"tenant:{scope.scope_id}": {
                "units_consumed": scope.units_consumed,
                "window_reset_at": scope.window_reset_at,
            }
            for scope in scopes
        }

    def __repr__(self) -> str:
        return (
            f"UsageTracker(global={self.global_scope.units_consumed:g}, "
            f"tenants={len(self._tenants)})"
        )
