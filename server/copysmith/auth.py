# Shared-secret check on X-API-Key for the admin app calling this service.
# Probes and scrapers stay open; CORS preflights never carry the header.


import secrets
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger(__name__)

_OPEN_PREFIXES: tuple[str, ...] = ("/health", "/metrics")


def is_open_path(path: str) -> bool:
    """Root, health probes and metrics endpoints (including sub-paths)."""
    return path == "/" or any(
        path == prefix or path.startswith(prefix + "/") for prefix in _OPEN_PREFIXES
    )


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests whose X-API-Key does not match the configured secret."""

    def __init__(self, app: Any, *, api_key: str) -> None:
        super().__init__(app)
        self._expected = api_key.encode()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or is_open_path(request.url.path):
            return await call_next(request)

        provided = request.headers.get("x-api-key", "").encode()
        if provided and secrets.compare_digest(provided, self._expected):
            return await call_next(request)

        logger.warning(
            "auth_rejected",
            path=request.url.path,
            method=request.method,
            key_present=bool(provided),
        )
        return JSONResponse(
            status_code=401,
            content={"error": "Invalid or missing API key", "type": "AuthenticationError"},
        )
