# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")

    # ── Upstream text generation ─────────────────────────────────────────────
    deepseek_base_url: str = "https://api.deepseek.com"
    # Empty = not configured. Checked on the first upstream attempt, not at
    # startup, so the service still boots and serves cache hits.
    deepseek_api_key: SecretStr = SecretStr("")
    deepseek_model: str = "deepseek-chat"
    upstream_timeout_ms: int = Field(25_000, gt=0)
    upstream_max_retries: int = Field(3, ge=1)
    retry_backoff_ms: int = Field(500, ge=0)

    # ── Quota ────────────────────────────────────────────────────────────────
    max_requests_per_minute: int = Field(30, ge=1)
    free_tier_limit: int = Field(150, ge=0)

    # ── Store (Redis) ────────────────────────────────────────────────────────
    redis_url: str = "redis://localhost:6379"
    cache_ttl_seconds: int = Field(60 * 60 * 24, gt=0)
    store_retry_interval_seconds: float = 2.0  # Wait before re-pinging a dead store

    # ── Security ─────────────────────────────────────────────────────────────
    # Inbound X-API-Key. Access via settings.api_key.get_secret_value().
    # Empty string = auth disabled (local dev / test).
    api_key: SecretStr = SecretStr("")

    # Comma-separated origins for CORS. Empty string = deny all cross-origin.
    allowed_origins: str = ""

    # Outer per-IP limit on /generate (slowapi format, e.g. "120/minute").
    rate_limit: str = "120/minute"

    # ── Feature flags ────────────────────────────────────────────────────────
    enable_debug_routes: bool = False
    port: int = 8080

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def upstream_timeout_seconds(self) -> float:
        return self.upstream_timeout_ms / 1000

    @property
    def upstream_configured(self) -> bool:
        return bool(self.deepseek_api_key.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
