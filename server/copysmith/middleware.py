# ─────────────────────────────────────────────────────────────────────────────
# Request Middleware — correlation ID + access log
# ─────────────────────────────────────────────────────────────────────────────


import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# Caller-supplied IDs are reused only when they look like an ID.
_INBOUND_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")
_QUIET_PREFIXES = ("/health", "/metrics")


def _request_id(request: Request) -> str:
    inbound = request.headers.get("x-request-id", "")
    if _INBOUND_ID.fullmatch(inbound):
        return inbound
    return uuid.uuid4().hex[:8]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds ``request_id`` into structlog contextvars for the whole request.

    Every log line emitted while handling the request (quota, cache, upstream
    attempts) carries the ID. Probe and scrape paths are not access-logged.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id
        start = time.perf_counter()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
            if not request.url.path.startswith(_QUIET_PREFIXES):
                logger.info(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=elapsed_ms,
                )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)
        return response
