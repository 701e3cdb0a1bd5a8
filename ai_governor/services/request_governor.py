"""
Request Governor

Single entry point for calls to the paid, quota-constrained AI completion
service. Each execute() call:

1. resolves the tenant (explicit or configured default)
2. rolls over elapsed 24h usage windows (global + tenant)
3. rejects early if the breaker is open, the global budget or the tenant
   quota is exhausted
4. otherwise runs the caller's operation with retries and backoff
5. on any rejection or exhausted retries, serves the last cached success
   for the same key if it is still fresh, else raises the GovernorError

One governor is meant to be constructed per process and shared by all
callers; every collaborator is injectable so tests can build their own.
"""

import hashlib
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence

import structlog

from ai_governor.config import ConfigProvider, EnvConfigProvider, Settings
from ai_governor.services.cache_store import CacheStore
from ai_governor.services.cost_control import (
    CircuitBreaker,
    CircuitOpenError,
    GlobalBudgetExhausted,
    TenantQuotaExhausted,
    UsageTracker,
    usage_units,
)
from ai_governor.services.errors import GovernorError
from ai_governor.services.retry import RetriesExhausted, RetryExecutor, error_message

logger = structlog.get_logger(__name__)

PROMPT_LOG_CHARS = 120
ERROR_LOG_CHARS = 300


@dataclass
class OperationResult:
    """What a governed operation resolves to: the value plus reported usage."""
    value: Any
    usage: Any = None


@dataclass
class GovernedRequest:
    """
    One call through the governor.

    cache_key wins over cache_key_parts; with neither, the call is never
    cached and has no fallback.
    """
    operation_name: str
    operation: Callable[[], Awaitable[Any]]
    tenant_id: Optional[str] = None
    cache_key: Optional[str] = None
    cache_key_parts: Sequence[Any] = field(default_factory=tuple)
    prompt_snippet: Optional[str] = None

    def resolve_cache_key(self) -> Optional[str]:
        if self.cache_key:
            return self.cache_key
        if self.cache_key_parts:
            return build_cache_key(self.operation_name, *self.cache_key_parts)
        return None


def build_cache_key(operation_name: str, *parts: Any) -> str:
    """
    Stable, order-sensitive SHA-256 key for an operation and its arguments.

    None parts are skipped, strings are hashed as-is, anything else as
    compact sorted-key JSON.
    """
    digest = hashlib.sha256(operation_name.encode())
    for part in parts:
        if part is None:
            continue
        if isinstance(part, str):
            serialized = part
        else:
            serialized = json.dumps(part, sort_keys=True, separators=(",", ":"), default=str)
        digest.update(serialized.encode())
    return digest.hexdigest()


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit - 3]}..."


def format_prompt(snippet: Optional[str]) -> str:
    """Whitespace-collapsed prompt excerpt for log lines (max 120 chars)."""
    if not snippet:
        return ""
    return truncate(re.sub(r"\s+", " ", snippet).strip(), PROMPT_LOG_CHARS)


class RequestGovernor:
    """
    Retry + circuit breaker + budget/quota + cache fallback in front of an
    upstream AI service.

    Usage:
        governor = RequestGovernor()

        answer = await governor.execute(GovernedRequest(
            operation_name="tasks.summarize",
            tenant_id="acme",
            cache_key_parts=[task_id, description],
            prompt_snippet=description,
            operation=lambda: call_claude(description),  # -> OperationResult
        ))
    """

    def __init__(
        self,
        config_provider: Optional[ConfigProvider] = None,
        cache: Optional[CacheStore] = None,
        usage: Optional[UsageTracker] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config_provider = config_provider or EnvConfigProvider()
        self.cache = cache or CacheStore(clock=clock)
        self.usage = usage or UsageTracker(clock=clock)
        self.breaker = breaker or CircuitBreaker(clock=clock)
        self.retry = RetryExecutor(sleep=sleep) if sleep else RetryExecutor()

    async def execute(self, request: GovernedRequest) -> Any:
        """
        Run a governed call.

        Returns:
            The operation's value, or a fresh cached value when the call was
            rejected or failed.

        Raises:
            CircuitOpenError, GlobalBudgetExhausted, TenantQuotaExhausted,
            RetriesExhausted: when no usable cache entry exists.
        """
        config = self.config_provider.snapshot()
        tenant_id = request.tenant_id or config.default_tenant_id or "global"
        cache_key = request.resolve_cache_key()
        operation_name = request.operation_name
        log = logger.bind(operation=operation_name, tenant=tenant_id)

        tenant_scope = self.usage.ensure_scope(tenant_id)
        self.usage.reset_if_window_elapsed(self.usage.global_scope)
        self.usage.reset_if_window_elapsed(tenant_scope)

        if self.breaker.is_open():
            return self._fallback(
                CircuitOpenError(self.breaker.open_until, operation_name), cache_key, log
            )

        global_limit = config.global_daily_budget_tokens
        if self.usage.is_over_budget(self.usage.global_scope, global_limit):
            return self._fallback(
                GlobalBudgetExhausted(
                    self.usage.global_scope.units_consumed, global_limit, operation_name
                ),
                cache_key,
                log
            )

        tenant_limit = config.tenant_daily_quota_tokens
        if self.usage.is_over_budget(tenant_scope, tenant_limit):
            return self._fallback(
                TenantQuotaExhausted(
                    tenant_id, tenant_scope.units_consumed, tenant_limit, operation_name
                ),
                cache_key,
                log
            )

        prompt = format_prompt(request.prompt_snippet)

        def on_success(result: Any, attempt: int, duration_ms: int) -> None:
            value, usage = _unpack(result)
            self.breaker.record_success()
            self.usage.record_usage(self.usage.global_scope, usage)
            self.usage.record_usage(tenant_scope, usage)
            log.info(
                "ai_request_succeeded",
                attempt=attempt,
                duration_ms=duration_ms,
                tokens=usage_units(usage) or "n/a",
                prompt=prompt
            )
            # None is indistinguishable from a cache miss
            if cache_key and value is not None:
                self.cache.put(cache_key, value, config.cache_ttl_ms / 1000)

        def on_failure(error: Exception, attempt: int, duration_ms: int) -> None:
            log.warning(
                "ai_request_attempt_failed",
                attempt=attempt,
                duration_ms=duration_ms,
                error=truncate(error_message(error), ERROR_LOG_CHARS),
                prompt=prompt
            )
            self.breaker.record_failure(
                threshold=config.circuit_breaker_fail_max,
                cooldown_seconds=config.circuit_breaker_cooldown_ms / 1000,
                reason=f"[{operation_name}] {truncate(error_message(error), ERROR_LOG_CHARS)}"
            )

        try:
            result = await self.retry.run(
                request.operation,
                max_attempts=config.max_retries,
                operation_name=operation_name,
                on_success=on_success,
                on_failure=on_failure,
            )
        except RetriesExhausted as e:
            return self._fallback(e, cache_key, log)

        value, _ = _unpack(result)
        return value

    def _fallback(self, error: GovernorError, cache_key: Optional[str], log) -> Any:
        """Serve a fresh cached value for the call, or raise the rejection."""
        cached = self.cache.get(cache_key)
        if cached is not None:
            log.warning("ai_request_cache_fallback", reason=error.reason)
            return cached

        log.error("ai_request_rejected", reason=error.reason, error_type=type(error).__name__)
        raise error

    def status(self) -> dict:
        """Operator view of breaker, usage and cache state."""
        config: Settings = self.config_provider.snapshot()
        return {
            "circuit_breaker": {
                "state": self.breaker.state,
                "failure_count": self.breaker.failure_count,
                "open_until": self.breaker.open_until,
            },
            "global_budget_tokens": config.global_daily_budget_tokens,
            "tenant_quota_tokens": config.tenant_daily_quota_tokens,
            "usage": self.usage.snapshot(),
            "cache_entries": len(self.cache),
        }


def _unpack(result: Any):
    if isinstance(result, OperationResult):
        return result.value, result.usage
    return result, None

