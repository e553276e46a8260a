"""
Schemas - pydantic contracts for model output and inbound requests.
"""

from case_context_engine.schemas.base import CamelModel, validate_request
from case_context_engine.schemas.chat import ChatRequest, ChatResponse
from case_context_engine.schemas.coaching import CoachingRequest
from case_context_engine.schemas.context import CaseContext, CaseMetadata
from case_context_engine.schemas.recommendations import (
    ApproachRecommendation,
    Recommendation,
    RecommendationSet,
    ResourceRecommendation,
    Rubric,
    RubricEvaluation,
    RubricSectionGrade,
    WarningRecommendation,
    default_recommendation,
    default_recommendation_set,
)
from case_context_engine.schemas.simulation import (
    Scenario,
    SimulationEvaluation,
    SimulationRequest,
)

__all__ = [
    "CamelModel",
    "validate_request",
    "ChatRequest",
    "ChatResponse",
    "CoachingRequest",
    "CaseContext",
    "CaseMetadata",
    "ApproachRecommendation",
    "Recommendation",
    "RecommendationSet",
    "ResourceRecommendation",
    "Rubric",
    "RubricEvaluation",
    "RubricSectionGrade",
    "WarningRecommendation",
    "default_recommendation",
    "default_recommendation_set",
    "Scenario",
    "SimulationEvaluation",
    "SimulationRequest",
]
