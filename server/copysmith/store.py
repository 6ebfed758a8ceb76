# ─────────────────────────────────────────────────────────────────────────────
# Key-Value Store — lazy, reconnect-tolerant Redis wrapper
# ─────────────────────────────────────────────────────────────────────────────
# The store is optional infrastructure. Nothing connects at import or startup;
# available() is the per-call capability check that callers branch on. A
# failed ping or command marks the store down, and the next ping is deferred
# by retry_interval so a dead Redis doesn't add a connect timeout to every
# request.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger(__name__)

# Errors that mean "the store is not usable right now".
STORE_ERRORS: tuple[type[BaseException], ...] = (RedisError, OSError)


def _default_client(url: str) -> Any:
    return aioredis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=1.0,
        socket_timeout=1.0,
        health_check_interval=30,
    )


class KeyValueStore:
    """Async Redis wrapper with lazy connect and fail-open availability."""

    def __init__(
        self,
        url: str,
        *,
        retry_interval: float = 2.0,
        client_factory: Callable[[str], Any] = _default_client,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._url = url
        self._retry_interval = retry_interval
        self._client_factory = client_factory
        self._clock = clock
        self._client: Any = None
        self._ready = False
        self._next_attempt_at = 0.0

    @property
    def is_connected(self) -> bool:
        """Whether the last interaction with the store succeeded."""
        return self._ready

    async def available(self) -> bool:
        """Connect-or-reuse. Never raises; False means degrade."""
        if self._ready:
            return True
        if self._clock() < self._next_attempt_at:
            return False
        if self._client is None:
            self._client = self._client_factory(self._url)
        try:
            await self._client.ping()
        except STORE_ERRORS as e:
            self._mark_down(e)
            return False
        self._ready = True
        logger.info("store_connected")
        return True

    def _mark_down(self, error: BaseException) -> None:
        logger.warning("store_unavailable", error=str(error), retry_in_s=self._retry_interval)
        self._ready = False
        self._next_attempt_at = self._clock() + self._retry_interval

    async def _run(self, command: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await getattr(self._client, command)(*args, **kwargs)
        except STORE_ERRORS as e:
            self._mark_down(e)
            raise

    # ── Commands ─────────────────────────────────────────────────────────

    async def get(self, key: str) -> str | None:
        return await self._run("get", key)  # type: ignore[no-any-return]

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._run("set", key, value, ex=ttl_seconds)

    async def incr(self, key: str) -> int:
        return int(await self._run("incr", key))

    async def incrby(self, key: str, amount: int) -> int:
        return int(await self._run("incrby", key, amount))

    async def expire(self, key: str, seconds: int, *, nx: bool = False) -> None:
        """Set a TTL. With ``nx``, only when the key has none (Redis 7+)."""
        if nx:
            await self._run("expire", key, seconds, nx=True)
        else:
            await self._run("expire", key, seconds)

    async def close(self) -> None:
        """Release the connection pool, if one was ever created."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._ready = False
