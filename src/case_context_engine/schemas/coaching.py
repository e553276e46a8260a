"""
Provider coaching request.

The caller sends the provider, their caseload and the cases to focus on.
Records are passed through as plain dicts: they are owned by the record
store's collaborators and only read here.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from case_context_engine.schemas.base import CamelModel, validate_request
from case_context_engine.schemas.recommendations import Rubric


class CoachingRequest(CamelModel):
    provider: dict[str, Any]
    cases: list[dict[str, Any]]
    selected_case_ids: list[str]
    services: list[dict[str, Any]] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    notes: list[dict[str, Any]] = Field(default_factory=list)
    reviews: list[dict[str, Any]] = Field(default_factory=list)
    rubric: Rubric | None = None

    @property
    def provider_id(self) -> str | None:
        return self.provider.get("id")

    @property
    def selected_cases(self) -> list[dict[str, Any]]:
        """Selected cases in caseload order. Unknown ids are ignored."""
        wanted = set(self.selected_case_ids)
        return [case for case in self.cases if case.get("id") in wanted]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CoachingRequest":
        return validate_request(cls, payload, ["provider", "cases", "selectedCaseIds"])
