# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness, readiness, metrics
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness. Near-zero cost, always 200.
#   /health/ready  → Readiness. 503 only when no upstream key is configured;
#                    the store is optional, so its state is reported but
#                    never gates traffic.
#   /metrics       → Generation counters and latency percentiles.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from copysmith.config import Settings
from copysmith.dependencies import get_metrics, get_settings_dep, get_store
from copysmith.schemas import LivenessResponse, ReadinessResponse
from copysmith.services.metrics import GenerationMetrics
from copysmith.store import KeyValueStore

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe — no deps, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(
    settings: Settings = Depends(get_settings_dep),
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    """Readiness probe — can this instance produce fresh generations?"""
    upstream_configured = settings.upstream_configured
    store_connected = await store.available()

    response = ReadinessResponse(
        status="ready" if upstream_configured else "not_ready",
        upstream_configured=upstream_configured,
        store_connected=store_connected,
    )
    return JSONResponse(
        status_code=200 if upstream_configured else 503,
        content=response.model_dump(),
    )


@router.get("/metrics")
async def metrics_endpoint(
    metrics: GenerationMetrics = Depends(get_metrics),
) -> dict[str, Any]:
    """Generation metrics — latency, hit rates, failures."""
    return metrics.to_dict()
