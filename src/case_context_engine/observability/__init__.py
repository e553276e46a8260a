"""
Observability Module - OpenTelemetry tracing

USAGE:
------
# At application startup:
from case_context_engine.observability import init_tracing

init_tracing()  # Installs an SDK TracerProvider if TRACING_ENABLED=true

# In code that needs tracing:
from case_context_engine.observability import get_tracer

tracer = get_tracer()
with tracer.start_span("search", attributes={"key": "value"}) as span:
    # ... do work ...
    span.set_attribute("result", "success")
"""

from __future__ import annotations

import logging

from case_context_engine.observability.attributes import (
    CASE_ID,
    CONTEXT_DOCUMENT_COUNT,
    CONTEXT_SOURCE,
    GEN_AI_REQUEST_MODEL,
    PROVIDER_ID,
    SEARCH_RESULT_COUNT,
    SYNTHESIS_RECOMMENDATION_COUNT,
    generation_attributes,
    search_attributes,
    synthesis_attributes,
    vectorize_attributes,
)
from case_context_engine.observability.config import (
    TracingConfig,
    get_config,
    reset_config,
)
from case_context_engine.observability.tracer import (
    NoOpSpan,
    NoOpTracer,
    SpanProtocol,
    TracerProtocol,
    get_tracer,
    reset_tracer,
)

logger = logging.getLogger(__name__)

_tracing_initialized = False


def init_tracing(config: TracingConfig | None = None) -> bool:
    """
    Install an OpenTelemetry SDK tracer provider.

    Spans go to an OTLP/HTTP collector when an endpoint is configured,
    otherwise to the console. New traces are sampled at `sample_ratio`;
    child spans follow their parent's decision.

    Returns:
        True if tracing was initialised, False if disabled
    """
    global _tracing_initialized
    if _tracing_initialized:
        return True

    config = config or get_config()
    if not config.enabled:
        logger.debug("Tracing disabled")
        return False

    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
    from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

    if config.collector_endpoint:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

        exporter = OTLPSpanExporter(endpoint=config.collector_endpoint)
        logger.info("Exporting spans to %s", config.collector_endpoint)
    else:
        exporter = ConsoleSpanExporter()

    provider = TracerProvider(
        resource=Resource.create({"service.name": config.service_name}),
        sampler=ParentBased(TraceIdRatioBased(config.sample_ratio)),
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    reset_tracer()
    _tracing_initialized = True
    return True


def shutdown_tracing() -> None:
    """Flush and shut down the tracer provider."""
    global _tracing_initialized

    if not _tracing_initialized:
        return

    from opentelemetry import trace

    provider = trace.get_tracer_provider()
    if hasattr(provider, "shutdown"):
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
    # Attributes
    "CASE_ID",
    "PROVIDER_ID",
    "CONTEXT_SOURCE",
    "CONTEXT_DOCUMENT_COUNT",
    "GEN_AI_REQUEST_MODEL",
    "SEARCH_RESULT_COUNT",
    "SYNTHESIS_RECOMMENDATION_COUNT",
    # Helpers
    "generation_attributes",
    "search_attributes",
    "synthesis_attributes",
    "vectorize_attributes",
]
