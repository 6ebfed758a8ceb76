# Core generation orchestrator: quota → cache → prompt → upstream → extract →
# sanitize → cache write + usage. One upstream success per fresh generation.


import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from opentelemetry import trace

from copysmith.cache.generation_cache import GenerationCache, fingerprint
from copysmith.config import Settings
from copysmith.exceptions import (
    ExtractionError,
    MonthlyLimitExceededError,
    RateLimitExceededError,
    UpstreamError,
    UpstreamTimeoutError,
)
from copysmith.pipeline.extraction import extract_structured
from copysmith.pipeline.prompt_builder import build_prompt
from copysmith.pipeline.sanitize import sanitize_html
from copysmith.schemas import GenerationRequest, GenerationResult, Socials
from copysmith.services.metrics import GenerationMetrics
from copysmith.services.quota import RATE_WINDOW_SECONDS, QuotaTracker
from copysmith.services.upstream import ChatCompletionClient

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


def normalize_result(parsed: dict[str, Any], sanitizer: Callable[[str | None], str]) -> GenerationResult:
    """Default missing keys, coerce socials, sanitize the description."""
    description = parsed.get("description")
    socials_raw = parsed.get("socials")

    socials = None
    if isinstance(socials_raw, dict):
        socials = Socials(
            twitter=str(socials_raw.get("twitter") or ""),
            instagram=str(socials_raw.get("instagram") or ""),
        )

    return GenerationResult(
        description=sanitizer(None if description is None else str(description)),
        socials=socials,
    )


class GenerationOrchestrator:
    """Orchestrates one generation request end to end.

    Holds no mutable state of its own beyond injected collaborators, so one
    instance serves every concurrent request.
    """

    def __init__(
        self,
        settings: Settings,
        quota: QuotaTracker,
        cache: GenerationCache,
        upstream: ChatCompletionClient,
        *,
        metrics: GenerationMetrics | None = None,
        sanitizer: Callable[[str | None], str] = sanitize_html,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._quota = quota
        self._cache = cache
        self._upstream = upstream
        self._metrics = metrics
        self._sanitizer = sanitizer
        self._sleep = sleep

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Full generation flow with OTel tracing."""
        with tracer.start_as_current_span("generate") as span:
            span.set_attribute("product_id", request.product.id)
            span.set_attribute("vibe", str(request.vibe))
            return await self._generate_traced(request, span)

    async def _generate_traced(
        self, request: GenerationRequest, parent_span: trace.Span
    ) -> GenerationResult:
        start = time.perf_counter()
        tenant = request.tenant_id

        # Limits run before the cache: a cached answer still costs a request.
        rate = await self._quota.check_rate_limit(tenant)
        if not rate.allowed:
            if self._metrics:
                self._metrics.record_rejection("rate")
            raise RateLimitExceededError(
                tenant or "",
                self._settings.max_requests_per_minute,
                retry_after_seconds=RATE_WINDOW_SECONDS,
            )

        usage = await self._quota.check_monthly_limit(tenant)
        if not usage.allowed:
            if self._metrics:
                self._metrics.record_rejection("monthly")
            raise MonthlyLimitExceededError(tenant or "", usage.used, usage.limit)

        fp = fingerprint(
            request.product.id,
            request.vibe,
            request.format,
            request.keywords,
            request.include_socials,
        )
        parent_span.set_attribute("fingerprint", fp)

        with tracer.start_as_current_span("cache_lookup"):
            cached = await self._cache.get(fp)
        if cached is not None:
            parent_span.set_attribute("cached", True)
            if self._metrics:
                self._metrics.record_request((time.perf_counter() - start) * 1000, cached=True)
            logger.info("generation_cache_hit", fingerprint=fp, tenant=tenant)
            return cached
        parent_span.set_attribute("cached", False)

        prompt = build_prompt(
            request.product,
            request.vibe,
            request.format,
            request.keywords,
            request.include_socials,
        )

        text = await self._call_with_retry(prompt, fp)

        try:
            parsed = extract_structured(text)
        except ExtractionError as e:
            if self._metrics:
                self._metrics.record_failure("extraction")
            logger.error("extraction_failed", fingerprint=fp, error=e.message, chars=len(text))
            raise

        result = normalize_result(parsed, self._sanitizer)

        with tracer.start_as_current_span("cache_write"):
            await self._cache.set(fp, result, self._settings.cache_ttl_seconds)
        await self._quota.increment_usage(tenant)

        elapsed = int((time.perf_counter() - start) * 1000)
        parent_span.set_attribute("latency_ms", elapsed)
        logger.info(
            "generated",
            fingerprint=fp,
            tenant=tenant,
            time_ms=elapsed,
            socials=result.socials is not None,
        )
        if self._metrics:
            self._metrics.record_request(elapsed, cached=False)
        return result

    async def _call_with_retry(self, prompt: str, fp: str) -> str:
        """Up to max_retries attempts, each under its own timeout.

        Linear backoff of ``attempt × retry_backoff_ms`` between failures, none
        after the last. ConfigurationError propagates from the first attempt.
        """
        max_attempts = self._settings.upstream_max_retries
        timeout_s = self._settings.upstream_timeout_seconds
        backoff_s = self._settings.retry_backoff_ms / 1000
        last_error: UpstreamError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                with tracer.start_as_current_span("upstream_call") as span:
                    span.set_attribute("attempt", attempt)
                    try:
                        return await asyncio.wait_for(
                            self._upstream.complete(prompt), timeout=timeout_s
                        )
                    except TimeoutError:
                        raise UpstreamTimeoutError(timeout_s) from None
            except UpstreamError as e:
                last_error = e
                if self._metrics:
                    self._metrics.record_attempt_failure(isinstance(e, UpstreamTimeoutError))
                logger.warning(
                    "upstream_attempt_failed",
                    fingerprint=fp,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=e.message,
                    error_type=type(e).__name__,
                )
                if attempt < max_attempts:
                    await self._sleep(attempt * backoff_s)

        if self._metrics:
            self._metrics.record_failure("upstream")
        reason = last_error.message if last_error else "unknown error"
        raise UpstreamError(f"Generation failed: {reason}") from last_error
