# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

import json
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr
from redis.exceptions import ConnectionError as RedisConnectionError

from copysmith.cache.generation_cache import GenerationCache
from copysmith.config import Settings
from copysmith.main import create_app
from copysmith.rate_limit import limiter
from copysmith.schemas import GenerationRequest, ProductSnapshot
from copysmith.services.generator import GenerationOrchestrator
from copysmith.services.metrics import GenerationMetrics
from copysmith.services.quota import QuotaTracker
from copysmith.services.upstream import ChatCompletionClient

# ── Fake store ───────────────────────────────────────────────────────────────


class FakeStore:
    """In-memory stand-in for KeyValueStore with a manual clock for TTLs.

    ``down`` makes available() return False; ``broken`` makes every command
    raise the same ConnectionError redis-py would.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.down = False
        self.broken = False
        self._data: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}

    @property
    def is_connected(self) -> bool:
        return not self.down

    async def available(self) -> bool:
        return not self.down

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def seed(self, key: str, value: str) -> None:
        """Write a raw value with no TTL, bypassing ``broken``."""
        self._data[key] = value
        self._expires_at.pop(key, None)

    def ttl(self, key: str) -> float | None:
        self._purge(key)
        if key not in self._expires_at:
            return None
        return self._expires_at[key] - self.now

    def _purge(self, key: str) -> None:
        if key in self._expires_at and self._expires_at[key] <= self.now:
            self._data.pop(key, None)
            self._expires_at.pop(key, None)

    def _check(self) -> None:
        if self.broken:
            raise RedisConnectionError("Connection refused")

    async def get(self, key: str) -> str | None:
        self._check()
        self._purge(key)
        return self._data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._check()
        self._data[key] = value
        self._expires_at[key] = self.now + ttl_seconds

    async def incr(self, key: str) -> int:
        return await self.incrby(key, 1)

    async def incrby(self, key: str, amount: int) -> int:
        self._check()
        self._purge(key)
        value = int(self._data.get(key, "0")) + amount
        self._data[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int, *, nx: bool = False) -> None:
        self._check()
        self._purge(key)
        if key in self._data and not (nx and key in self._expires_at):
            self._expires_at[key] = self.now + seconds

    async def close(self) -> None:
        return None


@dataclass
class Clock:
    """Mutable wall clock for QuotaTracker."""

    now: datetime = field(default_factory=lambda: datetime(2026, 3, 14, 12, 0, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now


# ── Builders ─────────────────────────────────────────────────────────────────


def model_reply(description: str = "<p>Fresh copy</p>", socials: Any = None) -> str:
    """A well-behaved model reply."""
    return json.dumps({"description": description, "socials": socials})


def _make_request(**overrides: Any) -> GenerationRequest:
    product = overrides.pop(
        "product",
        ProductSnapshot(
            id="gid://shopify/Product/1",
            title="Trail Runner",
            description="Light shoe.\nGrippy sole.",
            metafields=[{"namespace": "specs", "key": "weight", "value": "220g"}],
        ),
    )
    params: dict[str, Any] = {"product": product, "tenant_id": "shop-a.myshopify.com"}
    params.update(overrides)
    return GenerationRequest(**params)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def make_request() -> Callable[..., GenerationRequest]:
    """Build a GenerationRequest for a default product; kwargs override fields."""
    return _make_request


@pytest.fixture
def reply() -> Callable[..., str]:
    return model_reply


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests — fake key, small limits, no real store."""
    return Settings(
        deepseek_api_key=SecretStr("test-upstream-key"),
        deepseek_base_url="https://upstream.test",
        redis_url="redis://store.test:6379",
        max_requests_per_minute=30,
        free_tier_limit=150,
        upstream_timeout_ms=50,
        upstream_max_retries=3,
        retry_backoff_ms=500,
        log_json=False,
        log_level="DEBUG",
        enable_debug_routes=True,
    )


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def quota(fake_store: FakeStore, clock: Clock, test_settings: Settings) -> QuotaTracker:
    return QuotaTracker(
        fake_store,  # type: ignore[arg-type]
        per_minute_limit=test_settings.max_requests_per_minute,
        monthly_limit=test_settings.free_tier_limit,
        now=clock,
    )


@pytest.fixture
def generation_cache(fake_store: FakeStore) -> GenerationCache:
    return GenerationCache(fake_store)  # type: ignore[arg-type]


@pytest.fixture
def upstream() -> ChatCompletionClient:
    """Upstream client with complete() mocked to a valid reply."""
    client = MagicMock(spec=ChatCompletionClient)
    client.complete = AsyncMock(return_value=model_reply())
    return client


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the orchestrator's backoff, in seconds."""
    return []


@pytest.fixture
def metrics() -> GenerationMetrics:
    return GenerationMetrics()


@pytest.fixture
def orchestrator(
    test_settings: Settings,
    quota: QuotaTracker,
    generation_cache: GenerationCache,
    upstream: ChatCompletionClient,
    sleeps: list[float],
    metrics: GenerationMetrics,
) -> GenerationOrchestrator:
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return GenerationOrchestrator(
        test_settings,
        quota,
        generation_cache,
        upstream,
        metrics=metrics,
        sleep=_sleep,
    )


@pytest.fixture
def client(
    test_settings: Settings,
    fake_store: FakeStore,
    quota: QuotaTracker,
    generation_cache: GenerationCache,
    metrics: GenerationMetrics,
    orchestrator: GenerationOrchestrator,
) -> TestClient:
    """FastAPI TestClient with app.state populated from the fixtures above.

    TestClient is not entered as a context manager, so the lifespan never
    runs: no Redis, no outbound HTTP.
    """
    from copysmith.config import get_settings

    get_settings.cache_clear()

    env_overrides = {
        "DEEPSEEK_API_KEY": "test-upstream-key",
        "LOG_JSON": "false",
        "LOG_LEVEL": "DEBUG",
        "ENABLE_DEBUG_ROUTES": "true",
        "ALLOWED_ORIGINS": "*",
    }
    for k, v in env_overrides.items():
        os.environ[k] = v

    try:
        limiter.reset()
        app = create_app()
        client = TestClient(app, raise_server_exceptions=False)

        app.state.settings = test_settings
        app.state.store = fake_store
        app.state.quota = quota
        app.state.generation_cache = generation_cache
        app.state.metrics = metrics
        app.state.orchestrator = orchestrator

        return client
    finally:
        for k in env_overrides:
            os.environ.pop(k, None)
        get_settings.cache_clear()
