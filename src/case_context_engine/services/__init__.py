"""
Services - the engine's operations, each with its collaborators injected.

    VectorizationService  text -> stored VectorizedDocument
    SimilaritySearch      query -> nearest documents across collections
    ContextAssembler      case/provider -> documents + summary
    RecommendationSynthesizer  context -> typed recommendations
    MetadataUpdater       case -> recomputed document counts
    CoachingService       provider caseload -> recommendations (bounded batch)
    SimulationService     scenario / evaluation protocol
    ChatService           provider question -> answer grounded in the caseload
"""

from case_context_engine.services.chat import ChatService
from case_context_engine.services.coaching import CoachingService, pattern_recommendations
from case_context_engine.services.context import ContextAssembler
from case_context_engine.services.metadata import MetadataUpdater
from case_context_engine.services.recommendations import (
    RecommendationSynthesizer,
    parse_recommendation_set,
    strip_code_fences,
)
from case_context_engine.services.rendering import render_case_query, render_record
from case_context_engine.services.search import SearchOptions, SimilaritySearch
from case_context_engine.services.simulation import (
    SimulationService,
    SimulationSession,
    SimulationState,
)
from case_context_engine.services.vectorization import VectorizationService

__all__ = [
    "ChatService",
    "CoachingService",
    "pattern_recommendations",
    "ContextAssembler",
    "MetadataUpdater",
    "RecommendationSynthesizer",
    "parse_recommendation_set",
    "strip_code_fences",
    "render_case_query",
    "render_record",
    "SearchOptions",
    "SimilaritySearch",
    "SimulationService",
    "SimulationSession",
    "SimulationState",
    "VectorizationService",
]
