"""
Provider coaching batch.

For every selected case: assemble context, then synthesize recommendations.
Cases run concurrently but never more than `max_concurrent_generations`
at once (asyncio.Semaphore), to stay inside the model's rate limits.

Alongside the model output, a few pattern recommendations are derived
directly from the caseload:

- successful cases (completed/successful)   -> approach
- challenging cases (at_risk/challenging)   -> warning
- selected cases resembling successful ones -> approach
- any services                              -> resource
- any notes                                 -> approach

The result is never empty: with nothing usable, the single default
recommendation is returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from case_context_engine.core.errors import CaseEngineError
from case_context_engine.schemas.coaching import CoachingRequest
from case_context_engine.schemas.recommendations import (
    ApproachRecommendation,
    Recommendation,
    ResourceRecommendation,
    WarningRecommendation,
    default_recommendation,
)
from case_context_engine.services.rendering import render_case_query

if TYPE_CHECKING:
    from case_context_engine.services.context import ContextAssembler
    from case_context_engine.services.recommendations import RecommendationSynthesizer

logger = logging.getLogger(__name__)

SUCCESSFUL_STATUSES = {"completed", "successful"}
CHALLENGING_STATUSES = {"at_risk", "challenging"}
SIMILARITY_CUTOFF = 0.5

# Heuristic recommendations are less certain than model output
HIGH_CONFIDENCE = 0.75
MEDIUM_CONFIDENCE = 0.6

# (case flag, pattern)
_SUCCESS_PATTERNS = [
    ("communication", "Regular communication with families"),
    ("documentation", "Thorough documentation of all interactions"),
    ("followUp", "Consistent follow-up on action items"),
    ("collaboration", "Strong collaboration with other service providers"),
]

_RISK_FACTORS = [
    ("communicationIssues", "Communication gaps with families"),
    ("documentationIssues", "Incomplete documentation"),
    ("followUpIssues", "Inconsistent follow-up"),
    ("collaborationIssues", "Limited collaboration with other providers"),
]


# ---------------------------------------------------------------------------
# CASELOAD PATTERNS (pure)
# ---------------------------------------------------------------------------


def _overlap(a: list[Any] | None, b: list[Any] | None) -> float:
    a, b = a or [], b or []
    common = sum(1 for item in a if item in b)
    return common / max(len(a) or 1, len(b) or 1)


def case_similarity(case: dict[str, Any], other: dict[str, Any]) -> float:
    """
    Similarity in [0, 1] over four equally weighted factors:
    same type, child age within two years, shared needs, shared challenges.
    """
    score = 0.0
    if case.get("type") is not None and case.get("type") == other.get("type"):
        score += 1
    age, other_age = case.get("childAge"), other.get("childAge")
    if isinstance(age, (int, float)) and isinstance(other_age, (int, float)):
        if abs(age - other_age) <= 2:
            score += 1
    score += _overlap(case.get("needs"), other.get("needs"))
    score += _overlap(case.get("challenges"), other.get("challenges"))
    return score / 4


def successful_patterns(cases: list[dict[str, Any]]) -> list[Recommendation]:
    found = {pattern for flag, pattern in _SUCCESS_PATTERNS for case in cases if case.get(flag)}
    return [
        ApproachRecommendation(
            title="Successful Case Pattern",
            description=pattern,
            confidence=HIGH_CONFIDENCE,
            source="successful_cases",
        )
        for _, pattern in _SUCCESS_PATTERNS
        if pattern in found
    ]


def risk_mitigation(cases: list[dict[str, Any]]) -> list[Recommendation]:
    found = {factor for flag, factor in _RISK_FACTORS for case in cases if case.get(flag)}
    return [
        WarningRecommendation(
            title="Risk Mitigation Strategy",
            description=f"Address {factor.lower()}",
            confidence=HIGH_CONFIDENCE,
            source="challenging_cases",
        )
        for _, factor in _RISK_FACTORS
        if factor in found
    ]


def case_specific_strategies(
    selected: list[dict[str, Any]],
    successful: list[dict[str, Any]],
) -> list[Recommendation]:
    recommendations: list[Recommendation] = []
    for case in selected:
        scores = [
            case_similarity(case, other)
            for other in successful
            if other.get("id") != case.get("id")
        ]
        best = max(scores, default=0.0)
        if best > SIMILARITY_CUTOFF:
            recommendations.append(
                ApproachRecommendation(
                    title=f"Case-Specific Strategy: {case.get('name') or case.get('id')}",
                    description=(
                        "Based on similar successful cases, focus on maintaining "
                        "regular communication and thorough documentation."
                    ),
                    confidence=round(best, 2),
                    source="similar_cases",
                )
            )
    return recommendations


def pattern_recommendations(request: CoachingRequest) -> list[Recommendation]:
    """Recommendations derived from the caseload alone, without the model."""
    successful = [c for c in request.cases if c.get("status") in SUCCESSFUL_STATUSES]
    challenging = [c for c in request.cases if c.get("status") in CHALLENGING_STATUSES]

    recommendations = successful_patterns(successful)
    recommendations += risk_mitigation(challenging)
    recommendations += case_specific_strategies(request.selected_cases, successful)

    if request.services:
        recommendations.append(
            ResourceRecommendation(
                title="Service Delivery Optimization",
                description=(
                    "Ensure timely service delivery and maintain clear "
                    "communication with service providers."
                ),
                confidence=MEDIUM_CONFIDENCE,
                source="service_patterns",
            )
        )
    if request.notes:
        recommendations.append(
            ApproachRecommendation(
                title="Documentation and Communication",
                description="Maintain detailed documentation of all interactions and follow-ups.",
                confidence=MEDIUM_CONFIDENCE,
                source="documentation_patterns",
            )
        )
    return recommendations


# ---------------------------------------------------------------------------
# BATCH
# ---------------------------------------------------------------------------


class CoachingService:
    def __init__(
        self,
        context: ContextAssembler,
        synthesizer: RecommendationSynthesizer,
        max_concurrent: int = 4,
    ):
        self._context = context
        self._synthesizer = synthesizer
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def _for_case(self, case: dict[str, Any], request: CoachingRequest) -> list[Recommendation]:
        case_id = str(case.get("id"))
        async with self._semaphore:
            try:
                context = await self._context.get_context(case_id, render_case_query(case))
                return await self._synthesizer.synthesize(case_id, context, request.rubric)
            except CaseEngineError as e:
                logger.warning("Skipping case %s in coaching batch: %s", case_id, e)
                return []

    async def coach_provider(self, request: CoachingRequest | dict[str, Any]) -> list[Recommendation]:
        """
        Recommendations for a provider across their selected cases.

        Raises:
            RequestValidationError: provider, cases or selectedCaseIds missing
        """
        if not isinstance(request, CoachingRequest):
            request = CoachingRequest.from_payload(request)

        selected = request.selected_cases
        logger.info(
            "Coaching provider %s: %d case(s), %d selected",
            request.provider_id, len(request.cases), len(selected),
        )

        per_case = await asyncio.gather(*(self._for_case(case, request) for case in selected))
        recommendations = [rec for recs in per_case for rec in recs]
        recommendations += pattern_recommendations(request)

        if not recommendations:
            logger.info("No usable recommendations for provider %s, using default", request.provider_id)
            return [default_recommendation()]
        return recommendations
