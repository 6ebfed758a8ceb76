# ─────────────────────────────────────────────────────────────────────────────
# Outer Rate Limit — per-client slowapi guard on /generate
# ─────────────────────────────────────────────────────────────────────────────
# Lives apart from main.py so route modules can import the limiter without a
# cycle. This is only a flood guard in front of the service; tenant quotas
# (per-minute window, monthly allowance) are enforced in services/quota.py.
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from copysmith.config import get_settings

logger = structlog.get_logger(__name__)

_WINDOW_SECONDS = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}


def client_address(request: Request) -> str:
    """The socket peer.

    X-Forwarded-For is caller-controlled, so it is never read here. Behind a
    proxy, uvicorn's --proxy-headers rewrites the peer from the trusted hop.
    """
    return get_remote_address(request)


limiter = Limiter(key_func=client_address)


def retry_after_seconds(rate_limit: str) -> int:
    """Window length of a slowapi limit string ("120/minute" → 60)."""
    try:
        _, window = rate_limit.strip().split("/")
    except ValueError:
        return 60
    return _WINDOW_SECONDS.get(window.strip().rstrip("s"), 60)


async def outer_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same ``{"error", "type"}`` shape as the tenant limit."""
    retry_after = retry_after_seconds(get_settings().rate_limit)
    logger.warning(
        "client_rate_limited",
        client=client_address(request),
        path=request.url.path,
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests from this client.", "type": "ClientRateLimitExceeded"},
        headers={"Retry-After": str(retry_after)},
    )
