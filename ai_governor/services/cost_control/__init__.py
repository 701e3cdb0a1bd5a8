"""
Cost Control Services

Daily token accounting (global budget + per-tenant quota) and the upstream
circuit breaker used by the request governor.
"""

from .usage_tracker import (
    UsageTracker,
    UsageScope,
    GlobalBudgetExhausted,
    TenantQuotaExhausted,
    usage_units,
)
from .circuit_breaker import CircuitBreaker, CircuitOpenError

__all__ = [
    "UsageTracker",
    "UsageScope",
    "GlobalBudgetExhausted",
    "TenantQuotaExhausted",
    "usage_units",
    "CircuitBreaker",
    "CircuitOpenError",
]
