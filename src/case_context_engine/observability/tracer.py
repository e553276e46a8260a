"""
Span API used by the services, with two backends.

    NoOpTracer  tracing disabled, or init_tracing() not called yet
    OTelTracer  thin wrapper over an OpenTelemetry SDK tracer

Services only ever call get_tracer().start_span(...) and the three span
methods below, so they run unchanged with tracing on or off.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Protocol


class SpanProtocol(Protocol):
    def set_attribute(self, key: str, value: Any) -> None:
        ...

    def set_status(self, status: str, description: str | None = None) -> None:
        """status is "ok" or "error"."""
        ...

    def record_exception(self, exception: BaseException) -> None:
        ...


class TracerProtocol(Protocol):
    @contextmanager
    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[SpanProtocol]:
        ...


# ---------------------------------------------------------------------------
# DISABLED
# ---------------------------------------------------------------------------


class NoOpSpan:
    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_status(self, status: str, description: str | None = None) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass


class NoOpTracer:
    @contextmanager
    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[NoOpSpan]:
        yield NoOpSpan()


# ---------------------------------------------------------------------------
# OPENTELEMETRY
# ---------------------------------------------------------------------------


def _present(attributes: dict[str, Any] | None) -> dict[str, Any]:
    # OTel rejects None values; optional ids (case, provider) are often unset
    return {k: v for k, v in (attributes or {}).items() if v is not None}


class OTelSpan:
    def __init__(self, span: Any):
        self._span = span

    def set_attribute(self, key: str, value: Any) -> None:
        if value is not None:
            self._span.set_attribute(key, value)

    def set_status(self, status: str, description: str | None = None) -> None:
        from opentelemetry.trace import StatusCode

        if status == "ok":
            self._span.set_status(StatusCode.OK)
        else:
            self._span.set_status(StatusCode.ERROR, description)

    def record_exception(self, exception: BaseException) -> None:
        self._span.record_exception(exception)


class OTelTracer:
    """
    Spans are started as the current span, so nested service calls
    (context -> search -> llm.chat) form one trace. An exception leaving
    the block is recorded and marks the span as an error.
    """

    def __init__(self, tracer: Any):
        self._tracer = tracer

    @contextmanager
    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[OTelSpan]:
        with self._tracer.start_as_current_span(name, attributes=_present(attributes)) as span:
            yield OTelSpan(span)


# ---------------------------------------------------------------------------
# FACTORY
# ---------------------------------------------------------------------------


_tracer: TracerProtocol | None = None


def get_tracer(scope: str = "case_context_engine") -> TracerProtocol:
    """
    The process-wide tracer.

    NoOpTracer while TRACING_ENABLED is off. With tracing on but no SDK
    provider installed yet, a NoOpTracer is returned without caching it,
    so the first call after init_tracing() picks up the real one.

    Args:
        scope: Instrumentation scope name (first real tracer only)
    """
    global _tracer
    if _tracer is not None:
        return _tracer

    from case_context_engine.observability.config import get_config

    if not get_config().enabled:
        _tracer = NoOpTracer()
        return _tracer

    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider

    if not isinstance(trace.get_tracer_provider(), TracerProvider):
        return NoOpTracer()

    _tracer = OTelTracer(trace.get_tracer(scope))
    return _tracer


def reset_tracer() -> None:
    global _tracer
    _tracer = None
