"""
Shared fixtures.

Everything runs in memory: MockEmbeddings, InMemoryCollection,
InMemoryRecordStore and a scripted prompt executor. No network, no database.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from case_context_engine.core.config import EngineConfig
from case_context_engine.embeddings.openai_embeddings import MockEmbeddings
from case_context_engine.engine import CaseContextEngine
from case_context_engine.llm import prompts
from case_context_engine.records.store import InMemoryRecordStore
from case_context_engine.retrieval.store import get_vector_store


# ---------------------------------------------------------------------------
# SCRIPTED EXECUTOR
# ---------------------------------------------------------------------------


class ScriptedExecutor:
    """
    PromptExecutor double keyed by template.

    Each script entry is a string, an exception instance (raised), or a
    callable taking the variables and returning either. Unscripted
    templates raise AssertionError so tests notice unexpected calls.
    """

    def __init__(self, scripts: dict[str, Any] | None = None):
        self.scripts: dict[str, Any] = dict(scripts or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def calls_for(self, template: str) -> list[dict[str, Any]]:
        return [variables for t, variables in self.calls if t == template]

    async def execute(self, template: str, variables: dict[str, Any]) -> str:
        # Rendering catches missing template variables
        template.format(**variables)
        self.calls.append((template, variables))
        if template not in self.scripts:
            raise AssertionError("unscripted template")
        result = self.scripts[template]
        if callable(result):
            result = result(variables)
        if isinstance(result, BaseException):
            raise result
        return result


def recommendations_json(*recs: dict[str, Any]) -> str:
    return json.dumps({"recommendations": list(recs)})


APPROACH = {
    "type": "approach",
    "title": "Weekly family check-ins",
    "description": "Schedule a standing weekly call with the foster parents.",
    "confidence": 0.85,
    "source": "case notes",
}

WARNING = {
    "type": "warning",
    "title": "Missed school days",
    "description": "Attendance dropped in the last month.",
    "confidence": 0.7,
    "source": "school report",
}


# ---------------------------------------------------------------------------
# RECORDS
# ---------------------------------------------------------------------------


@pytest.fixture
def case_record() -> dict[str, Any]:
    return {
        "id": "case_123",
        "name": "Rivera Family",
        "type": "foster_care",
        "status": "active",
        "goals": [{"description": "Stable school attendance"}, {"description": "Reunification"}],
        "challenges": ["transportation", "housing"],
        "keyInterventions": ["family therapy"],
        "assignedWorker": {"id": "provider_1", "name": "Dana Lee", "email": "dana@example.org"},
        "family": {
            "children": [{"name": "Sophia", "age": 9, "needs": ["tutoring"], "concerns": []}],
            "caregivers": [{"name": "Maria", "role": "foster parent", "supportNeeds": ["respite"]}],
        },
        "notes": [{"content": "Initial home visit went well."}],
    }


@pytest.fixture
def provider_record() -> dict[str, Any]:
    return {
        "id": "provider_1",
        "name": "Dana Lee",
        "role": "case worker",
        "specialties": ["foster care", "family reunification"],
    }


@pytest.fixture
def records(case_record, provider_record) -> InMemoryRecordStore:
    return InMemoryRecordStore(
        {
            "cases": [
                case_record,
                {"id": "case_no_worker", "type": "kinship", "status": "active"},
            ],
            "providers": [provider_record],
        }
    )


# ---------------------------------------------------------------------------
# ENGINE PARTS
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(
        use_mock_embeddings=True,
        embedding_dim=4096,
        upstream_timeout_s=2.0,
        retry_backoff_s=0.0,
        max_concurrent_generations=2,
    )


@pytest.fixture
def embeddings() -> MockEmbeddings:
    return MockEmbeddings(dimensions=4096)


@pytest.fixture
def vector_store():
    return get_vector_store()


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor(
        {
            prompts.CASE_SUMMARY_TEMPLATE: "Placement is stable; school attendance needs follow-up.",
            prompts.PROVIDER_SUMMARY_TEMPLATE: "Dana keeps thorough notes and follows up quickly.",
            prompts.RECOMMENDATIONS_TEMPLATE: recommendations_json(APPROACH, WARNING),
        }
    )


@pytest.fixture
async def engine(config, embeddings, vector_store, records, executor):
    engine = CaseContextEngine(config, embeddings, vector_store, records, executor)
    yield engine
    await engine.close()
