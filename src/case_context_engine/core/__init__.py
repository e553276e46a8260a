"""
Core module - shared protocols, configuration and errors.

USAGE:
------
from case_context_engine.core import VectorCollection, EmbeddingProvider

class MyCollection:
    '''Implements VectorCollection protocol.'''
    ...
"""

from case_context_engine.core.config import EngineConfig
from case_context_engine.core.errors import (
    CaseEngineError,
    CaseNotFoundError,
    ConfigurationError,
    InvalidSimulationStateError,
    MalformedModelOutputError,
    MalformedRecommendationError,
    NoAssignedWorkerError,
    NotFoundError,
    ProviderNotFoundError,
    RequestValidationError,
    UnsupportedTypeError,
    UpstreamEmbeddingError,
    UpstreamError,
    UpstreamGenerationError,
    UpstreamSearchError,
)
from case_context_engine.core.protocols import (
    EmbeddingProvider,
    PromptExecutor,
    RecordStore,
    VectorCollection,
)
from case_context_engine.core.resilience import call_upstream

__all__ = [
    # Config
    "EngineConfig",
    # Protocols
    "EmbeddingProvider",
    "PromptExecutor",
    "RecordStore",
    "VectorCollection",
    # Resilience
    "call_upstream",
    # Errors
    "CaseEngineError",
    "CaseNotFoundError",
    "ConfigurationError",
    "InvalidSimulationStateError",
    "MalformedModelOutputError",
    "MalformedRecommendationError",
    "NoAssignedWorkerError",
    "NotFoundError",
    "ProviderNotFoundError",
    "RequestValidationError",
    "UnsupportedTypeError",
    "UpstreamEmbeddingError",
    "UpstreamError",
    "UpstreamGenerationError",
    "UpstreamSearchError",
]
