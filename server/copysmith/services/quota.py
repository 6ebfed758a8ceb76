# ─────────────────────────────────────────────────────────────────────────────
# Quota Tracker — per-tenant fixed-window rate limit + monthly usage
# ─────────────────────────────────────────────────────────────────────────────
# Counters live in the shared store so INCR is the only atomicity we need.
# Every check fails open: a missing tenant or an unreachable store never
# blocks generation.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from copysmith.store import STORE_ERRORS, KeyValueStore

logger = structlog.get_logger(__name__)

RATE_WINDOW_SECONDS = 60


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    remaining: int


@dataclass(frozen=True)
class MonthlyUsage:
    allowed: bool
    used: int
    limit: int


def rate_limit_key(tenant_id: str) -> str:
    return f"copysmith:ratelimit:{tenant_id}"


def usage_key(tenant_id: str, now: datetime) -> str:
    return f"copysmith:usage:{tenant_id}:{now:%Y-%m}"


def usage_ttl_seconds(now: datetime) -> int:
    """Seconds from ``now`` until the first day of the month after next.

    The extra month keeps last month's counter readable after rollover.
    """
    year, month = now.year, now.month + 2
    if month > 12:
        year, month = year + 1, month - 12
    expires_at = datetime(year, month, 1, tzinfo=now.tzinfo or UTC)
    return int((expires_at - now).total_seconds())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class QuotaTracker:
    """Rate and monthly limits for one store. Clock is injectable for tests."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        per_minute_limit: int = 30,
        monthly_limit: int = 150,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._per_minute_limit = per_minute_limit
        self._monthly_limit = monthly_limit
        self._now = now

    @property
    def monthly_limit(self) -> int:
        return self._monthly_limit

    async def check_rate_limit(self, tenant_id: str | None) -> RateLimitStatus:
        """Count this call against the tenant's 60s window."""
        open_status = RateLimitStatus(allowed=True, remaining=self._per_minute_limit)
        if not tenant_id or not await self._store.available():
            return open_status

        key = rate_limit_key(tenant_id)
        try:
            count = await self._store.incr(key)
            # NX keeps the window fixed and re-arms a key whose first EXPIRE was lost.
            await self._store.expire(key, RATE_WINDOW_SECONDS, nx=True)
        except STORE_ERRORS as e:
            logger.warning("rate_limit_check_failed", tenant=tenant_id, error=str(e))
            return open_status

        if count > self._per_minute_limit:
            return RateLimitStatus(allowed=False, remaining=0)
        return RateLimitStatus(allowed=True, remaining=self._per_minute_limit - count)

    async def check_monthly_limit(self, tenant_id: str | None) -> MonthlyUsage:
        """Read (never increment) this month's usage."""
        open_usage = MonthlyUsage(allowed=True, used=0, limit=self._monthly_limit)
        if not tenant_id or not await self._store.available():
            return open_usage

        try:
            raw = await self._store.get(usage_key(tenant_id, self._now()))
            used = int(raw or 0)
        except (*STORE_ERRORS, ValueError) as e:
            logger.warning("monthly_usage_check_failed", tenant=tenant_id, error=str(e))
            return open_usage

        return MonthlyUsage(allowed=used < self._monthly_limit, used=used, limit=self._monthly_limit)

    async def increment_usage(self, tenant_id: str | None, amount: int = 1) -> None:
        """Record ``amount`` successful generations for the current month."""
        if not tenant_id or not await self._store.available():
            return

        now = self._now()
        key = usage_key(tenant_id, now)
        try:
            await self._store.incrby(key, amount)
            await self._store.expire(key, usage_ttl_seconds(now))
        except STORE_ERRORS as e:
            logger.warning("usage_increment_failed", tenant=tenant_id, error=str(e))
