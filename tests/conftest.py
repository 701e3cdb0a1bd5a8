"""Shared fixtures: deterministic clock and sleep for governor tests."""

import pytest

from ai_governor.config import Settings, StaticConfigProvider
from ai_governor.services.cache_store import CacheStore
from ai_governor.services.cost_control import CircuitBreaker, UsageTracker
from ai_governor.services.request_governor import RequestGovernor

START = 1_700_000_000.0


class FakeClock:
    """Manually advanced wall clock (seconds)."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records delays and advances the fake clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture
def config():
    """Scenario settings: 1000 global, 100 per tenant, trip after 5, 5 min cooldown, 1h TTL."""
    return StaticConfigProvider(Settings(
        global_daily_budget_tokens=1000,
        tenant_daily_quota_tokens=100,
        max_retries=3,
        circuit_breaker_fail_max=5,
        circuit_breaker_cooldown_ms=300000,
        cache_ttl_ms=3600000,
        default_tenant_id="global",
    ))


@pytest.fixture
def governor(config, clock, sleep):
    return RequestGovernor(
        config_provider=config,
        cache=CacheStore(clock=clock),
        usage=UsageTracker(clock=clock),
        breaker=CircuitBreaker(clock=clock),
        sleep=sleep,
        clock=clock,
    )
