# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint — text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges GenerationMetrics + cache stats → prometheus-client gauges.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from copysmith.cache.generation_cache import GenerationCache
from copysmith.dependencies import get_cache, get_metrics
from copysmith.services.metrics import GenerationMetrics

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────

_registry = CollectorRegistry()

_events = Gauge(
    "copysmith_events",
    "Generation event counts since process start",
    ["event"],
    registry=_registry,
)

_latency_ms = Gauge(
    "copysmith_latency_ms",
    "Request latency over the last 1000 results",
    ["quantile"],
    registry=_registry,
)

_cache_hit_ratio = Gauge(
    "copysmith_cache_hit_ratio",
    "Cache hit ratio (0.0–1.0)",
    registry=_registry,
)

_store_connected = Gauge(
    "copysmith_store_connected",
    "Whether the key-value store is reachable (1) or not (0)",
    registry=_registry,
)

_EVENT_FIELDS = (
    "requests_total",
    "cache_hits",
    "generations",
    "upstream_retries",
    "upstream_timeouts",
    "upstream_failures",
    "extraction_failures",
    "rate_limited",
    "monthly_limited",
)


def _sync_metrics(metrics: GenerationMetrics, cache: GenerationCache) -> None:
    """Sync GenerationMetrics and cache stats into Prometheus gauges."""
    data = metrics.to_dict()
    for name in _EVENT_FIELDS:
        _events.labels(event=name).set(data[name])

    _latency_ms.labels(quantile="0.5").set(data["latency_p50_ms"])
    _latency_ms.labels(quantile="0.95").set(data["latency_p95_ms"])

    stats = cache.stats()
    _cache_hit_ratio.set(stats["hit_rate"])
    _store_connected.set(1 if stats["store_connected"] else 0)


@router.get("/metrics/prometheus")
async def prometheus_metrics(
    metrics: GenerationMetrics = Depends(get_metrics),
    cache: GenerationCache = Depends(get_cache),
) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    _sync_metrics(metrics, cache)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
