# OpenTelemetry setup. The orchestrator always creates spans through the API;
# they are only exported when OTEL_EXPORTER selects an exporter here.

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider

logger = structlog.get_logger(__name__)


def configure_tracing(exporter: str) -> TracerProvider | None:
    """Install a global tracer provider for ``exporter`` ("console").

    Returns the provider so the lifespan can flush it on shutdown, or None
    when tracing stays disabled.
    """
    exporter = exporter.strip().lower()
    if not exporter:
        return None
    if exporter != "console":
        logger.warning("unknown_otel_exporter", exporter=exporter, supported=["console"])
        return None

    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

    provider = TracerProvider(resource=Resource.create({"service.name": "copysmith"}))
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter)
    return provider
