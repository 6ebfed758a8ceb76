# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# No global variables. Every dependency is explicit in endpoint signatures.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from copysmith.cache.generation_cache import GenerationCache
from copysmith.config import Settings
from copysmith.services.generator import GenerationOrchestrator
from copysmith.services.metrics import GenerationMetrics
from copysmith.services.quota import QuotaTracker
from copysmith.store import KeyValueStore


def get_store(request: Request) -> KeyValueStore:
    """Inject KeyValueStore into endpoints via Depends()."""
    return request.app.state.store  # type: ignore[no-any-return]


def get_cache(request: Request) -> GenerationCache:
    """Inject GenerationCache into endpoints via Depends()."""
    return request.app.state.generation_cache  # type: ignore[no-any-return]


def get_quota(request: Request) -> QuotaTracker:
    """Inject QuotaTracker into endpoints via Depends()."""
    return request.app.state.quota  # type: ignore[no-any-return]


def get_settings_dep(request: Request) -> Settings:
    """Inject Settings into endpoints via Depends()."""
    return request.app.state.settings  # type: ignore[no-any-return]


def get_metrics(request: Request) -> GenerationMetrics:
    """Inject GenerationMetrics into endpoints via Depends()."""
    return request.app.state.metrics  # type: ignore[no-any-return]


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    """Inject GenerationOrchestrator into endpoints via Depends()."""
    return request.app.state.orchestrator  # type: ignore[no-any-return]
