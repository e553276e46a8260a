"""
Recommendation Synthesizer - one generation request, one validated list.

The model is told to return only `{"recommendations": [...]}`. What it
actually returns is handled in three steps:

1. strip a markdown code fence wrapping the output (```json ... ```)
2. validate against RecommendationSet (pydantic discriminated union)
3. on failure, re-parse once from the outermost {...} span

With a rubric, the rubric_evaluation must exist and carry one section per
rubric section; it is moved to the front if the model put it elsewhere.

This layer never substitutes a default. Callers do (see the engine's
generate_recommendations and the coaching batch).
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from pydantic import ValidationError

from case_context_engine.core.errors import MalformedRecommendationError, UpstreamGenerationError
from case_context_engine.core.resilience import call_upstream
from case_context_engine.llm.prompts import RECOMMENDATIONS_TEMPLATE, recommendation_variables
from case_context_engine.observability.attributes import (
    SYNTHESIS_RECOMMENDATION_COUNT,
    SYNTHESIS_REPARSED,
    synthesis_attributes,
)
from case_context_engine.observability.tracer import get_tracer
from case_context_engine.schemas.recommendations import (
    Recommendation,
    RecommendationSet,
    Rubric,
    RubricEvaluation,
)

if TYPE_CHECKING:
    from case_context_engine.core.config import EngineConfig
    from case_context_engine.core.protocols import PromptExecutor
    from case_context_engine.schemas.context import CaseContext

logger = logging.getLogger(__name__)

_OPENING_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\n?")
_CLOSING_FENCE_RE = re.compile(r"\n?```$")


# ---------------------------------------------------------------------------
# PARSING (pure)
# ---------------------------------------------------------------------------


def strip_code_fences(text: str) -> str:
    """
    Remove a markdown fence wrapping the whole output.

    Only an opening fence line and a closing fence at the very end are
    removed; backticks inside JSON string values are left alone.
    """
    text = text.strip()
    if text.startswith("```"):
        text = _OPENING_FENCE_RE.sub("", text, count=1)
        text = _CLOSING_FENCE_RE.sub("", text.rstrip(), count=1)
    return text.strip()


def outermost_object(text: str) -> str | None:
    """The span from the first "{" to the last "}", if any."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def parse_recommendation_set(raw: str) -> tuple[RecommendationSet, bool]:
    """
    Parse model output into a RecommendationSet.

    Returns:
        (parsed set, whether the outermost-object re-parse was needed)

    Raises:
        MalformedRecommendationError: neither attempt validated
    """
    cleaned = strip_code_fences(raw)
    try:
        return RecommendationSet.model_validate_json(cleaned), False
    except ValidationError as first_error:
        candidate = outermost_object(cleaned)
        if candidate is not None and candidate != cleaned:
            try:
                return RecommendationSet.model_validate_json(candidate), True
            except ValidationError:
                pass
        logger.debug("Unparseable recommendation output: %r", raw)
        raise MalformedRecommendationError(
            f"Model output does not match the recommendation schema: "
            f"{first_error.error_count()} error(s)",
            raw_text=raw,
        ) from first_error


def enforce_rubric(
    recommendations: list[Recommendation],
    rubric: Rubric,
    raw: str = "",
) -> list[Recommendation]:
    """
    Put the rubric evaluation first and check its section count.

    Raises:
        MalformedRecommendationError: no rubric_evaluation, or wrong section count
    """
    index = next(
        (i for i, rec in enumerate(recommendations) if isinstance(rec, RubricEvaluation)),
        None,
    )
    if index is None:
        raise MalformedRecommendationError(
            "Rubric supplied but no rubric_evaluation was returned", raw_text=raw
        )

    evaluation = recommendations[index]
    expected = len(rubric.sections())
    if len(evaluation.sections) != expected:
        raise MalformedRecommendationError(
            f"rubric_evaluation has {len(evaluation.sections)} section(s), "
            f"rubric '{rubric.name}' has {expected}",
            raw_text=raw,
        )

    return [evaluation] + recommendations[:index] + recommendations[index + 1:]


# ---------------------------------------------------------------------------
# SYNTHESIZER
# ---------------------------------------------------------------------------


class RecommendationSynthesizer:
    def __init__(self, executor: PromptExecutor, config: EngineConfig):
        self._executor = executor
        self._config = config

    async def synthesize(
        self,
        target_id: str,
        context: CaseContext,
        rubric: Rubric | None = None,
    ) -> list[Recommendation]:
        """
        Generate recommendations for a case or provider.

        Raises:
            UpstreamGenerationError: the model call failed after the retry
            MalformedRecommendationError: the output violated the schema
        """
        tracer = get_tracer()
        section_count = len(rubric.sections()) if rubric is not None else None

        with tracer.start_span(
            "recommendations.synthesize",
            attributes=synthesis_attributes(target_id, section_count),
        ) as span:
            raw = await call_upstream(
                self._executor.execute,
                RECOMMENDATIONS_TEMPLATE,
                recommendation_variables(context.documents, context.summary, rubric),
                operation="recommendation generation",
                error_cls=UpstreamGenerationError,
                timeout_s=self._config.upstream_timeout_s,
                backoff_s=self._config.retry_backoff_s,
            )

            parsed, reparsed = parse_recommendation_set(raw)
            span.set_attribute(SYNTHESIS_REPARSED, reparsed)
            if reparsed:
                logger.info("Recovered recommendations for %s from surrounding text", target_id)

            recommendations = list(parsed.recommendations)
            if rubric is not None:
                recommendations = enforce_rubric(recommendations, rubric, raw)

            span.set_attribute(SYNTHESIS_RECOMMENDATION_COUNT, len(recommendations))
            span.set_status("ok")

        logger.info("Synthesized %d recommendation(s) for %s", len(recommendations), target_id)
        return recommendations
