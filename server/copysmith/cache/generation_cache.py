# Generation cache: fingerprint → sanitized GenerationResult in the shared store.
# Best-effort on both paths: an unavailable store is an always-miss cache.

from __future__ import annotations

import hashlib
import json
import time
from typing import Any

import structlog
from pydantic import ValidationError

from copysmith.schemas import GenerationResult
from copysmith.store import STORE_ERRORS, KeyValueStore

logger = structlog.get_logger(__name__)

KEY_PREFIX = "copysmith:cache:"
FINGERPRINT_LENGTH = 12
DEFAULT_TTL_SECONDS = 60 * 60 * 24


def fingerprint(
    product_id: str,
    vibe: str,
    fmt: str,
    keywords: str,
    include_socials: bool,
) -> str:
    """SHA-1 of the ordered inputs, first 12 hex chars.

    The inputs are encoded as a JSON array so that no two distinct argument
    tuples share an encoding (a plain "|" join would let ``("a|b", "c")``
    collide with ``("a", "b|c")``).
    """
    encoded = json.dumps(
        [str(product_id), str(vibe), str(fmt), keywords or "", bool(include_socials)],
        ensure_ascii=False,
    )
    return hashlib.sha1(encoded.encode()).hexdigest()[:FINGERPRINT_LENGTH]


class GenerationCache:
    """Fingerprint-keyed result cache on top of KeyValueStore."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds

        self._hits = 0
        self._misses = 0
        self._errors = 0
        self._writes = 0
        self._retrieval_total_ms = 0.0
        self._retrieval_count = 0

    @staticmethod
    def _key(fp: str) -> str:
        return f"{KEY_PREFIX}{fp}"

    # ── Get ──────────────────────────────────────────────────────────────

    async def get(self, fp: str) -> GenerationResult | None:
        """Look up a cached result. Any store or decode failure is a miss."""
        if not await self._store.available():
            self._misses += 1
            return None

        t0 = time.perf_counter()
        try:
            raw = await self._store.get(self._key(fp))
        except STORE_ERRORS as e:
            self._errors += 1
            self._misses += 1
            logger.warning("cache_read_failed", fingerprint=fp, error=str(e))
            return None
        elapsed_ms = (time.perf_counter() - t0) * 1000
        self._retrieval_total_ms += elapsed_ms
        self._retrieval_count += 1

        if raw is None:
            self._misses += 1
            logger.debug("cache_miss", fingerprint=fp)
            return None

        try:
            result = GenerationResult.model_validate_json(raw)
        except ValidationError as e:
            self._errors += 1
            self._misses += 1
            logger.warning("cache_entry_corrupt", fingerprint=fp, error=str(e))
            return None

        self._hits += 1
        logger.debug("cache_hit", fingerprint=fp, retrieval_ms=round(elapsed_ms, 1))
        return result

    # ── Set ──────────────────────────────────────────────────────────────

    async def set(self, fp: str, result: GenerationResult, ttl_seconds: int | None = None) -> None:
        """Write-through. Skipped silently (with a warning) if the store is down."""
        if not await self._store.available():
            logger.warning("cache_write_skipped", fingerprint=fp, reason="store_unavailable")
            return
        try:
            await self._store.set(
                self._key(fp),
                result.model_dump_json(),
                ttl_seconds or self._ttl_seconds,
            )
        except STORE_ERRORS as e:
            self._errors += 1
            logger.warning("cache_write_failed", fingerprint=fp, error=str(e))
            return
        self._writes += 1

    def stats(self) -> dict[str, Any]:
        """Return cache hit/miss statistics."""
        total = self._hits + self._misses
        avg_ms = (
            round(self._retrieval_total_ms / self._retrieval_count, 2)
            if self._retrieval_count > 0
            else 0.0
        )
        return {
            "store_connected": self._store.is_connected,
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "writes": self._writes,
            "hit_rate": round(self._hits / max(total, 1), 3),
            "avg_retrieval_ms": avg_ms,
        }
