# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

GENERIC_FAILURE = "Failed to generate content"


# ── Exception hierarchy ──────────────────────────────────────────────────────


class CopysmithError(Exception):
    """Base exception for all generation errors.

    ``message`` carries the diagnostic detail and is only logged.
    ``public_message`` is what the caller sees.
    """

    public_message: str = GENERIC_FAILURE

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ConfigurationError(CopysmithError):
    """Raised when upstream credentials are missing."""

    def __init__(self, setting: str):
        super().__init__(f"Required setting '{setting}' is not configured", status_code=500)


class RateLimitExceededError(CopysmithError):
    """Raised when a tenant exceeds its per-minute request window."""

    public_message = "Rate limit exceeded. Try again shortly."

    def __init__(self, tenant_id: str, limit: int, retry_after_seconds: int = 60):
        self.tenant_id = tenant_id
        self.limit = limit
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Rate limit exceeded for '{tenant_id}' ({limit}/min)",
            status_code=429,
        )


class MonthlyLimitExceededError(CopysmithError):
    """Raised when a tenant has used its monthly generation allowance."""

    def __init__(self, tenant_id: str, used: int, limit: int):
        self.tenant_id = tenant_id
        self.used = used
        self.limit = limit
        self.public_message = f"Monthly limit reached: {used}/{limit}"
        super().__init__(
            f"Monthly limit reached for '{tenant_id}': {used}/{limit}",
            status_code=429,
        )


class UpstreamError(CopysmithError):
    """Raised when the text-generation endpoint cannot produce a response."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message, status_code=status_code)


class UpstreamTimeoutError(UpstreamError):
    """Raised when a single upstream attempt exceeds its timeout."""

    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"Upstream request timed out after {timeout_s}s", status_code=504)


class UpstreamHTTPError(UpstreamError):
    """Raised on a non-2xx upstream response. Keeps status and body for logs."""

    def __init__(self, upstream_status: int, body: str):
        self.upstream_status = upstream_status
        self.body = body
        super().__init__(f"Upstream HTTP {upstream_status}: {body}")


class ExtractionError(CopysmithError):
    """Raised when no JSON object can be recovered from the model output."""

    def __init__(self, reason: str = "no valid object found"):
        super().__init__(f"Extraction failed: {reason}", status_code=502)


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Endpoints raise CopysmithError subclasses; these handlers log the
    diagnostic message and return only the public one.
    """

    @app.exception_handler(RateLimitExceededError)
    async def tenant_rate_limit_handler(
        request: Request, exc: RateLimitExceededError
    ) -> JSONResponse:
        """429 with Retry-After header."""
        logger.warning(
            "tenant_rate_limited_response",
            error=exc.message,
            retry_after=exc.retry_after_seconds,
        )
        return JSONResponse(
            status_code=429,
            content={"error": exc.public_message, "type": "RateLimitExceededError"},
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(CopysmithError)
    async def copysmith_error_handler(request: Request, exc: CopysmithError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("copysmith_error", error=exc.message, error_type=type(exc).__name__)
        else:
            logger.warning("copysmith_rejected", error=exc.message, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.public_message, "type": type(exc).__name__},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "type": "UnhandledError"},
        )
