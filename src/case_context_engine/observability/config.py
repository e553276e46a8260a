"""
Tracing configuration, read from the environment once per process.

Spans are only exported when TRACING_ENABLED is set; otherwise get_tracer()
hands out the NoOpTracer and tracing costs nothing.
"""

import os
from dataclasses import dataclass

from case_context_engine.core.config import env_bool
from case_context_engine.core.errors import ConfigurationError


@dataclass
class TracingConfig:
    """Where spans go and what they may contain.

    Environment Variables:
        TRACING_ENABLED: Export spans (default: false)
        TRACING_SERVICE_NAME: `service.name` resource attribute (default: case-context-engine)
        OTEL_EXPORTER_OTLP_ENDPOINT: OTLP/HTTP collector URL (console exporter if unset)
        TRACING_SAMPLE_RATIO: Fraction of new traces kept, 0.0-1.0 (default: 1.0)
        TRACING_CAPTURE_CONTENT: Attach prompts and model output to spans (default: false)

    Case records describe children and families. Content capture puts that
    text into the trace backend, so it stays off unless the backend is
    cleared to hold it.
    """

    enabled: bool = False
    service_name: str = "case-context-engine"
    collector_endpoint: str | None = None
    sample_ratio: float = 1.0
    capture_content: bool = False

    @classmethod
    def from_env(cls) -> "TracingConfig":
        try:
            sample_ratio = float(os.environ.get("TRACING_SAMPLE_RATIO", "1.0"))
        except ValueError as e:
            raise ConfigurationError(f"TRACING_SAMPLE_RATIO must be a number: {e}") from e
        if not 0.0 <= sample_ratio <= 1.0:
            raise ConfigurationError("TRACING_SAMPLE_RATIO must be between 0.0 and 1.0")

        return cls(
            enabled=env_bool("TRACING_ENABLED"),
            service_name=os.environ.get("TRACING_SERVICE_NAME", "case-context-engine"),
            collector_endpoint=os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
            sample_ratio=sample_ratio,
            capture_content=env_bool("TRACING_CAPTURE_CONTENT"),
        )


_config: TracingConfig | None = None


def get_config() -> TracingConfig:
    """Process-wide tracing config, loaded on first use."""
    global _config
    if _config is None:
        _config = TracingConfig.from_env()
    return _config


def reset_config() -> None:
    global _config
    _config = None
