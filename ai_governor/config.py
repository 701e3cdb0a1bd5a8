"""
Application Configuration
"""

from typing import Optional, Protocol

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Governor settings loaded from environment variables"""

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Upstream LLM (passed through to the caller's operation)
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-sonnet-4-5-20250929"

    # Cost Control
    # 0 or unset = unlimited
    global_daily_budget_tokens: Optional[int] = 500000  # Shared by all tenants
    tenant_daily_quota_tokens: Optional[int] = 100000  # Per tenant, rolling 24h

    # Retries
    max_retries: int = 3  # Attempts per execute(), floor of 1

    # Circuit Breaker
    circuit_breaker_fail_max: int = 5  # Consecutive failures before opening circuit
    circuit_breaker_cooldown_ms: int = 5 * 60 * 1000  # Stays open this long, then closes

    # Response Cache
    cache_ttl_ms: int = 60 * 60 * 1000

    # Tenancy
    default_tenant_id: str = "global"

    class Config:
        env_file = ".env"
        case_sensitive = False


class ConfigProvider(Protocol):
    """Source of live settings, read once at the top of every execute() call."""

    def snapshot(self) -> Settings:
        ...


class EnvConfigProvider:
    """
    Re-reads the environment on every snapshot so operators can retune
    budgets, retries and cooldowns without a restart.

    Only process environment variables are read per call. A dotenv file is
    read only when env_file is given, since snapshots run on every request.
    """

    def __init__(self, env_file: Optional[str] = None):
        self.env_file = env_file

    def snapshot(self) -> Settings:
        return Settings(_env_file=self.env_file)


class StaticConfigProvider:
    """Serves one fixed Settings instance (tests, embedding in other apps)."""

    def __init__(self, settings: Optional[Settings] = None, **overrides):
        base = settings or Settings()
        self._settings = base.model_copy(update=overrides) if overrides else base

    def snapshot(self) -> Settings:
        return self._settings

    def update(self, **overrides) -> None:
        """Swap in new values, as a live reload would."""
        self._settings = self._settings.model_copy(update=overrides)


settings = Settings()
