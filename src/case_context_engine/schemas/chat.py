"""
Provider chat schemas.

    request  -> ChatRequest {providerId, message}
    response -> ChatResponse {response, caseIds[]}
"""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, Field

from case_context_engine.schemas.base import CamelModel, validate_request


class ChatRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    provider_id: str = Field(min_length=1)
    message: str = Field(min_length=1)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChatRequest":
        return validate_request(cls, payload, ["providerId", "message"])


class ChatResponse(CamelModel):
    response: str
    # Cases whose context went into the answer
    case_ids: list[str] = Field(default_factory=list)
