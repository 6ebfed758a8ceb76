# ─────────────────────────────────────────────────────────────────────────────
# Cache Routes — monitoring
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends

from copysmith.cache.generation_cache import GenerationCache
from copysmith.dependencies import get_cache

router = APIRouter()


@router.get("/cache/stats")
async def cache_stats(cache: GenerationCache = Depends(get_cache)) -> dict[str, Any]:
    """Return cache hit/miss statistics.

    Response schema:
    {
        "store_connected": true,
        "hits": 145,
        "misses": 12,
        "errors": 0,
        "writes": 12,
        "hit_rate": 0.924,
        "avg_retrieval_ms": 0.8
    }
    """
    return cache.stats()
