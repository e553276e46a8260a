"""
Context and metadata shapes produced by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from case_context_engine.retrieval.document import VectorizedDocument
from case_context_engine.schemas.base import CamelModel

ContextSource = Literal["vector", "record"]


@dataclass(frozen=True)
class CaseContext:
    """
    Retrieved documents (most relevant first) plus a narrative summary.

    `source` says which branch built it: "vector" when similarity search
    found documents, "record" when the case or provider record itself was
    used. The summary is never empty.
    """

    documents: list[VectorizedDocument] = field(default_factory=list)
    summary: str = ""
    source: ContextSource = "vector"

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": [doc.to_dict() for doc in self.documents],
            "summary": self.summary,
            "source": self.source,
        }


class CaseMetadata(CamelModel):
    """Document counts cached on the case record. Recomputed, never incremented."""

    case_id: str
    document_count: int
    vector_count: int
    last_updated: datetime
