"""
Document model for the retrieval system.

Single responsibility: Define the structure of vectorized documents
stored in the per-type collections.

Documents are append-only. Search results are copies of the stored
document with `distance` filled in (dataclasses.replace), never mutations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import numpy as np


class EntityType(str, Enum):
    """Document types. Each maps to exactly one vector collection."""

    CASE = "case"
    PROVIDER = "provider"
    CHILD = "child"
    CAREGIVER = "caregiver"
    REVIEW = "review"
    COACHING = "coaching"

    @classmethod
    def parse(cls, value: "str | EntityType") -> "EntityType | None":
        """Return the matching EntityType, or None for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DocumentMetadata:
    """Metadata stored alongside every vectorized document."""

    type: EntityType
    case_id: str | None = None
    provider_id: str | None = None
    category: str | None = None
    tags: frozenset[str] = frozenset()
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Wire form with camelCase keys, as stored in the document store."""
        data: dict[str, Any] = {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.case_id is not None:
            data["caseId"] = self.case_id
        if self.provider_id is not None:
            data["providerId"] = self.provider_id
        if self.category is not None:
            data["category"] = self.category
        if self.tags:
            data["tags"] = sorted(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentMetadata":
        entity_type = EntityType.parse(data["type"])
        if entity_type is None:
            raise ValueError(f"Unknown document type: {data['type']!r}")
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            type=entity_type,
            case_id=data.get("caseId"),
            provider_id=data.get("providerId"),
            category=data.get("category"),
            tags=frozenset(data.get("tags") or ()),
            timestamp=timestamp or utc_now(),
        )


@dataclass(frozen=True)
class VectorizedDocument:
    """
    A document with its embedding.

    `embedding` is None only for synthetic documents built directly from a
    record (the context fallback path). `distance` is only set on search
    results; lower means more similar.
    """

    id: str
    content: str
    metadata: DocumentMetadata
    embedding: np.ndarray | None = field(default=None, compare=False, repr=False)
    distance: float | None = None

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata.to_dict(),
        }
        if self.distance is not None:
            data["distance"] = self.distance
        if include_embedding and self.embedding is not None:
            data["embedding"] = [float(x) for x in self.embedding]
        return data
