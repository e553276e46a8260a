"""
Shared pydantic base for wire-facing schemas.

Python attributes are snake_case; the JSON the model emits and callers send
is camelCase (overallGrade, expectedElements, selectedCaseIds). Both forms
are accepted on input; dump with by_alias=True for the wire form.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from case_context_engine.core.errors import RequestValidationError

M = TypeVar("M", bound=BaseModel)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def validate_request(model_cls: type[M], payload: dict[str, Any], required: list[str]) -> M:
    """
    Validate an inbound request payload.

    Args:
        model_cls: Request model to build
        payload: Raw request body (camelCase keys)
        required: camelCase keys that must be present and non-null

    Raises:
        RequestValidationError: naming the missing or invalid fields
    """
    if not isinstance(payload, dict):
        raise RequestValidationError(
            f"{model_cls.__name__} must be a JSON object", missing=list(required)
        )
    missing = [key for key in required if payload.get(key) is None]
    if missing:
        raise RequestValidationError(
            f"Missing required data: {', '.join(missing)}", missing=missing
        )
    try:
        return model_cls.model_validate(payload)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise RequestValidationError(
            f"Invalid request: {', '.join(fields)}", missing=fields
        ) from e
