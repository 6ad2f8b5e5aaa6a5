"""
Observability Module - OpenTelemetry Integration

Provides tracing for the pipeline workers and the retrieval service.
When TRACING_ENABLED is false every span is a no-op.

USAGE:
------
# At process startup:
from tripstreamer.observability import init_tracing

init_tracing()

# In code that needs tracing:
from tripstreamer.observability import get_tracer

tracer = get_tracer()
with tracer.start_span("worker.message", attributes={"key": "value"}) as span:
    # ... do work ...
    span.set_attribute("pipeline.outcome", "committed")
"""

from __future__ import annotations

import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

from tripstreamer.observability.config import (
    TracingConfig,
    get_config,
    reset_config,
)
from tripstreamer.observability.tracer import (
    TracerProtocol,
    SpanProtocol,
    NoOpTracer,
    NoOpSpan,
    get_tracer,
    reset_tracer,
)

logger = logging.getLogger(__name__)

_tracing_initialized = False


def init_tracing(config: TracingConfig | None = None) -> bool:
    """
    Initialize OpenTelemetry tracing.

    This should be called once at process startup. Installs an SDK tracer
    provider exporting to OTLP/HTTP, or to the console when no endpoint
    is configured.

    Returns:
        True if tracing was initialized, False if disabled
    """
    global _tracing_initialized
    if _tracing_initialized:
        return True

    config = config or get_config()

    if not config.enabled:
        logger.debug("Tracing disabled")
        return False

    provider = TracerProvider(
        resource=Resource.create({"service.name": config.service_name})
    )
    if config.otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint))
        )
        logger.info(f"Tracing exporting to: {config.otlp_endpoint}")
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        logger.info("Tracing exporting to console")

    trace.set_tracer_provider(provider)
    reset_tracer()
    _tracing_initialized = True
    return True


def shutdown_tracing() -> None:
    """Flush and shut down the tracer provider."""
    global _tracing_initialized

    if not _tracing_initialized:
        return

    provider = trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.shutdown()

    reset_tracer()
    reset_config()
    _tracing_initialized = False


__all__ = [
    # Initialization
    "init_tracing",
    "shutdown_tracing",
    # Config
    "TracingConfig",
    "get_config",
    "reset_config",
    # Tracer
    "TracerProtocol",
    "SpanProtocol",
    "NoOpTracer",
    "NoOpSpan",
    "get_tracer",
    "reset_tracer",
]
