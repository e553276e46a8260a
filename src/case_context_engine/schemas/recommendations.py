"""
Recommendation schemas - the output contract of the synthesizer.

A Recommendation is a closed tagged union on `type`:

    approach | resource | warning | rubric_evaluation

Downstream code can match on the concrete class instead of probing an
open-ended dict. The model's JSON is validated against RecommendationSet;
anything that does not fit is a MalformedRecommendationError upstream.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import ConfigDict, Field

from case_context_engine.schemas.base import CamelModel

DEFAULT_TITLE = "General Case Management"
DEFAULT_DESCRIPTION = (
    "Focus on maintaining regular communication with families and "
    "documenting all interactions."
)
DEFAULT_CONFIDENCE = 0.8
DEFAULT_SOURCE = "default"


# ---------------------------------------------------------------------------
# RECOMMENDATION VARIANTS
# ---------------------------------------------------------------------------


class _RecommendationBase(CamelModel):
    title: str
    description: str
    confidence: float = Field(ge=0, le=1, description="Model confidence from 0-1")
    source: str = ""


class ApproachRecommendation(_RecommendationBase):
    """A strategy or way of working with the family."""

    type: Literal["approach"] = "approach"


class ResourceRecommendation(_RecommendationBase):
    """A service, program or resource worth connecting the family with."""

    type: Literal["resource"] = "resource"


class WarningRecommendation(_RecommendationBase):
    """A risk or concern that needs attention."""

    type: Literal["warning"] = "warning"


class RubricSectionGrade(CamelModel):
    name: str
    grade: float = Field(ge=0, le=100)
    evidence: str = ""
    improvements: str = ""


class RubricEvaluation(_RecommendationBase):
    """Grades the provider against each rubric section plus an overall grade."""

    type: Literal["rubric_evaluation"] = "rubric_evaluation"
    sections: list[RubricSectionGrade]
    overall_grade: float = Field(ge=0, le=100)


Recommendation = Annotated[
    Union[
        ApproachRecommendation,
        ResourceRecommendation,
        WarningRecommendation,
        RubricEvaluation,
    ],
    Field(discriminator="type"),
]


class RecommendationSet(CamelModel):
    """The `{"recommendations": [...]}` object the model must return."""

    recommendations: list[Recommendation]

    @property
    def is_default(self) -> bool:
        return len(self.recommendations) == 1 and self.recommendations[0].source == DEFAULT_SOURCE


def default_recommendation() -> ApproachRecommendation:
    """The single recommendation returned whenever nothing usable was produced."""
    return ApproachRecommendation(
        title=DEFAULT_TITLE,
        description=DEFAULT_DESCRIPTION,
        confidence=DEFAULT_CONFIDENCE,
        source=DEFAULT_SOURCE,
    )


def default_recommendation_set() -> RecommendationSet:
    return RecommendationSet(recommendations=[default_recommendation()])


# ---------------------------------------------------------------------------
# RUBRIC
# ---------------------------------------------------------------------------

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_NUMBERED_RE = re.compile(r"^(\d+)[.)]\s+(.+)$")


def _clean_section_name(text: str) -> str:
    return text.strip().strip("*_").strip().rstrip(":").strip()


class Rubric(CamelModel):
    """
    A named evaluation template. Immutable input to the synthesizer.

    Section names are derived from `content`:
    1. markdown headings (a single top-level title heading is skipped in
       favour of the level below it)
    2. otherwise numbered top-level items ("1. Engagement", "2) Safety")
    3. otherwise the whole rubric is one section named after the rubric
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str
    content: str

    def sections(self) -> list[str]:
        lines = self.content.splitlines()

        headings = [
            (len(m.group(1)), _clean_section_name(m.group(2)))
            for m in (_HEADING_RE.match(line.strip()) for line in lines)
            if m
        ]
        if headings:
            levels = sorted({level for level, _ in headings})
            level = levels[0]
            top_count = sum(1 for lvl, _ in headings if lvl == level)
            if top_count == 1 and len(levels) > 1:
                level = levels[1]
            return [name for lvl, name in headings if lvl == level and name]

        # Only unindented numbers count; nested "1." items belong to their parent
        numbered = [
            _clean_section_name(m.group(2))
            for m in (_NUMBERED_RE.match(line) for line in lines)
            if m
        ]
        numbered = [name for name in numbered if name]
        if numbered:
            return numbered

        return [self.name]
