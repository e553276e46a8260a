"""
Simulation schemas - the two-phase scenario/evaluate protocol.

    generate  -> Scenario {scenario, expectedElements[]}
    evaluate  -> SimulationEvaluation {score, feedback, strengths[],
                 areasForImprovement[], missingElements[]}
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from case_context_engine.schemas.base import CamelModel, validate_request

SimulationAction = Literal["generate", "evaluate"]


class Scenario(CamelModel):
    scenario: str = Field(min_length=1)
    expected_elements: list[str] = Field(default_factory=list)


class SimulationEvaluation(CamelModel):
    score: float = Field(ge=0, le=100)
    feedback: str
    strengths: list[str] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)
    missing_elements: list[str] = Field(default_factory=list)


class SimulationRequest(CamelModel):
    """Stateless request body for run_simulation()."""

    provider_id: str
    case_id: str
    action: SimulationAction
    scenario: str | None = None
    response: str | None = None
    expected_elements: list[str] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SimulationRequest":
        request = validate_request(cls, payload, ["providerId", "caseId", "action"])
        if request.action == "evaluate":
            validate_request(cls, payload, ["scenario", "response"])
        return request
