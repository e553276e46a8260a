"""
Error taxonomy for the case context engine.

Every failure the engine surfaces is a CaseEngineError subclass, so callers
(route handlers, the CLI) can map them to a response without catching
arbitrary exceptions:

- ConfigurationError     -> fail fast at startup
- NotFoundError          -> not-found condition
- RequestValidationError -> bad-request condition
- UpstreamError          -> embedding / generation / search call failed
- MalformedModelOutputError -> model output violated the schema
"""

from __future__ import annotations


class CaseEngineError(Exception):
    """Base class for all engine errors."""


# ---------------------------------------------------------------------------
# STARTUP / REQUEST ERRORS
# ---------------------------------------------------------------------------


class ConfigurationError(CaseEngineError):
    """Missing credentials or endpoints. Raised at startup, never per-request."""


class RequestValidationError(CaseEngineError):
    """A request is missing required fields."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class UnsupportedTypeError(CaseEngineError):
    """A document type has no mapped vector collection."""

    def __init__(self, entity_type: str):
        super().__init__(f"No vector collection for document type '{entity_type}'")
        self.entity_type = entity_type


# ---------------------------------------------------------------------------
# NOT FOUND
# ---------------------------------------------------------------------------


class NotFoundError(CaseEngineError):
    """A referenced record does not exist."""


class CaseNotFoundError(NotFoundError):
    def __init__(self, case_id: str):
        super().__init__(f"Case '{case_id}' not found")
        self.case_id = case_id


class ProviderNotFoundError(NotFoundError):
    def __init__(self, provider_id: str):
        super().__init__(f"Provider '{provider_id}' not found")
        self.provider_id = provider_id


# ---------------------------------------------------------------------------
# UPSTREAM ERRORS
# ---------------------------------------------------------------------------


class UpstreamError(CaseEngineError):
    """An external call (embedding, generation, store query) failed."""


class UpstreamEmbeddingError(UpstreamError):
    """The embedding provider failed while vectorizing a document."""


class UpstreamSearchError(UpstreamError):
    """The query embedding or a collection query failed during search."""


class UpstreamGenerationError(UpstreamError):
    """The generative model call failed."""


class MalformedModelOutputError(CaseEngineError):
    """
    Model output could not be parsed into the expected schema.

    The raw text is kept for diagnostics. It must never be shown to an
    end user.
    """

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class MalformedRecommendationError(MalformedModelOutputError):
    """Recommendation output violated the recommendation schema."""


# ---------------------------------------------------------------------------
# SIMULATION
# ---------------------------------------------------------------------------


class NoAssignedWorkerError(NotFoundError):
    def __init__(self, case_id: str):
        super().__init__(f"No assigned worker found for case '{case_id}'")
        self.case_id = case_id


class InvalidSimulationStateError(CaseEngineError):
    """A simulation transition was requested from the wrong state."""
