# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn copysmith.main:create_app --factory --host 0.0.0.0 --port 8080

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from copysmith.auth import APIKeyMiddleware
from copysmith.cache.generation_cache import GenerationCache
from copysmith.config import Settings, get_settings
from copysmith.exceptions import register_exception_handlers
from copysmith.logging_config import configure_logging
from copysmith.middleware import RequestContextMiddleware
from copysmith.rate_limit import limiter, outer_limit_exceeded_handler
from copysmith.routes import cache as cache_routes
from copysmith.routes import debug, generate, health
from copysmith.routes import prometheus as prometheus_routes
from copysmith.services.generator import GenerationOrchestrator
from copysmith.services.metrics import GenerationMetrics
from copysmith.services.quota import QuotaTracker
from copysmith.services.upstream import ChatCompletionClient
from copysmith.store import KeyValueStore
from copysmith.tracing import configure_tracing

logger = structlog.get_logger(__name__)

# Slack on top of the per-attempt deadline so asyncio.wait_for fires first.
_HTTP_TIMEOUT_SLACK_S = 5.0


def build_orchestrator(
    settings: Settings,
    store: KeyValueStore,
    http: httpx.AsyncClient,
    metrics: GenerationMetrics | None = None,
) -> tuple[GenerationOrchestrator, QuotaTracker, GenerationCache]:
    """Wire the orchestrator and its collaborators from one settings object."""
    quota = QuotaTracker(
        store,
        per_minute_limit=settings.max_requests_per_minute,
        monthly_limit=settings.free_tier_limit,
    )
    cache = GenerationCache(store, ttl_seconds=settings.cache_ttl_seconds)
    upstream = ChatCompletionClient.from_settings(http, settings)
    orchestrator = GenerationOrchestrator(settings, quota, cache, upstream, metrics=metrics)
    return orchestrator, quota, cache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the shared HTTP client and store for the life of the process.

    Nothing touches the network here: the store connects on first use and a
    missing upstream key only fails generations, not startup.
    """
    settings = get_settings()
    tracer_provider = configure_tracing(os.environ.get("OTEL_EXPORTER", ""))

    if not settings.upstream_configured:
        logger.warning("upstream_key_missing", hint="Set DEEPSEEK_API_KEY; generations will fail")

    store = KeyValueStore(settings.redis_url, retry_interval=settings.store_retry_interval_seconds)
    http = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout_seconds + _HTTP_TIMEOUT_SLACK_S)
    )
    metrics = GenerationMetrics()
    orchestrator, quota, cache = build_orchestrator(settings, store, http, metrics)

    app.state.settings = settings
    app.state.store = store
    app.state.quota = quota
    app.state.generation_cache = cache
    app.state.metrics = metrics
    app.state.orchestrator = orchestrator
    logger.info(
        "service_started",
        model=settings.deepseek_model,
        per_minute_limit=settings.max_requests_per_minute,
        monthly_limit=settings.free_tier_limit,
    )

    try:
        yield
    finally:
        await http.aclose()
        await store.close()
        if tracer_provider is not None:
            tracer_provider.shutdown()
        logger.info("service_stopped")


def _cors_origins(raw: str) -> list[str]:
    """Comma-separated origins; empty means no cross-origin access."""
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        logger.warning("cors_disabled", hint="Set ALLOWED_ORIGINS to allow the admin app")
    return origins


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn copysmith.main:create_app --factory"""
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Copysmith",
        description="Product copy generation: quota, cache, upstream model, sanitized HTML",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, outer_limit_exceeded_handler)  # type: ignore[arg-type]
    register_exception_handlers(app)

    # Starlette wraps in reverse order: CORS runs first, RequestContext last.
    app.add_middleware(RequestContextMiddleware)
    inbound_key = settings.api_key.get_secret_value()
    if inbound_key:
        app.add_middleware(APIKeyMiddleware, api_key=inbound_key)
    else:
        logger.warning("api_key_auth_disabled", reason="API_KEY not set")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "X-Request-ID"],
    )

    for router, tag in (
        (health.router, "health"),
        (generate.router, "generate"),
        (cache_routes.router, "cache"),
        (prometheus_routes.router, "prometheus"),
    ):
        app.include_router(router, tags=[tag])
    if settings.enable_debug_routes:
        app.include_router(debug.router, prefix="/debug", tags=["debug"])

    return app
