"""
Integration Tests for the Engine Facade

Everything is wired for real (in-memory stores, MockEmbeddings) except the
generative model, which is scripted.

STAFF ENGINEER PATTERNS:
------------------------
1. Test at the facade seam callers actually use
2. Concurrency invariants checked after many interleaved ingestions
3. Background work is drained explicitly before asserting on it
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import APPROACH, WARNING, recommendations_json
from case_context_engine import CaseContextEngine, EngineConfig, create_engine
from case_context_engine.core.errors import (
    CaseEngineError,
    ConfigurationError,
    RequestValidationError,
    UnsupportedTypeError,
)
from case_context_engine.embeddings import MockEmbeddings
from case_context_engine.llm import prompts
from case_context_engine.records.store import CASES, InMemoryRecordStore
from case_context_engine.retrieval.document import EntityType
from case_context_engine.schemas.recommendations import DEFAULT_TITLE, RubricEvaluation
from case_context_engine.services.metadata import MetadataUpdater

RUBRIC = {"id": "rub_1", "name": "Practice", "content": "## Engagement\n## Safety"}


def rubric_evaluation_json():
    return {
        "type": "rubric_evaluation",
        "title": "Rubric Evaluation",
        "description": "Solid overall.",
        "confidence": 0.8,
        "sections": [
            {"name": "Engagement", "grade": 85},
            {"name": "Safety", "grade": 70},
        ],
        "overallGrade": 77,
    }


# ---------------------------------------------------------------------------
# METADATA REFRESH
# ---------------------------------------------------------------------------


class TestMetadataRefresh:

    async def test_concurrent_ingestion_converges(self, engine, records):
        n = 12
        await asyncio.gather(
            *(
                engine.vectorize(f"visit note {i}", {"type": "review" if i % 2 else "child", "caseId": "case_123"})
                for i in range(n)
            )
        )
        await engine.wait_for_background()
        await engine.refresh_case_metadata("case_123")

        metadata = (await records.read(CASES, "case_123"))["metadata"]
        assert metadata["documentCount"] == n
        assert metadata["vectorCount"] == n
        assert metadata["caseId"] == "case_123"
        assert "lastUpdated" in metadata

    async def test_refresh_counts_only_this_case(self, engine):
        await engine.vectorize("a", {"type": "review", "caseId": "case_123"})
        await engine.vectorize("b", {"type": "review", "caseId": "case_other"})
        await engine.wait_for_background()

        metadata = await engine.refresh_case_metadata("case_123")

        assert metadata.document_count == 1

    async def test_refresh_for_missing_case_is_skipped(self, vector_store):
        updater = MetadataUpdater(InMemoryRecordStore(), vector_store)
        assert await updater.refresh("ghost") is None

    async def test_refresh_errors_are_swallowed(self, vector_store, records):
        records.patch = AsyncMock(side_effect=RuntimeError("store down"))
        updater = MetadataUpdater(records, vector_store)

        assert await updater.refresh("case_123") is None

    async def test_close_drains_background_tasks(self, config, embeddings, vector_store, records, executor):
        engine = CaseContextEngine(config, embeddings, vector_store, records, executor)
        await engine.vectorize("note", {"type": "review", "caseId": "case_123"})

        await engine.close()

        assert not engine._background
        assert (await records.read(CASES, "case_123"))["metadata"]["documentCount"] == 1


# ---------------------------------------------------------------------------
# SEARCH AND CONTEXT THROUGH THE FACADE
# ---------------------------------------------------------------------------


class TestRetrieval:

    async def test_vectorize_then_search(self, engine, case_record):
        await engine.vectorize_record("case", case_record)

        results = await engine.search("foster care", case_id="case_123", limit=3)

        assert results[0].metadata.case_id == "case_123"
        assert results[0].to_dict()["metadata"]["type"] == "case"

    async def test_unsupported_type(self, engine):
        with pytest.raises(UnsupportedTypeError):
            await engine.vectorize("x", {"type": "invoice"})

    async def test_case_document_is_nearest_for_its_case(self, engine):
        text = "Case Type: foster_care, Status: active"
        stored = await engine.vectorize(text, {"type": "case", "caseId": "case_123"})
        await engine.vectorize(
            "Caregiver requested weekend respite on Saturdays",
            {"type": "caregiver", "caseId": "case_123"},
        )
        await engine.vectorize(text, {"type": "case", "caseId": "case_other"})

        results = await engine.search("foster care status", case_id="case_123", limit=5)

        assert [d.metadata.case_id for d in results] == ["case_123", "case_123"]
        assert results[0].id == stored.id
        assert results[0].content == text
        assert results[0].metadata.type is EntityType.CASE
        assert results[0].distance == min(d.distance for d in results)
        assert results[0].distance < results[1].distance

    async def test_context_rejects_non_positive_limit(self, engine, executor):
        with pytest.raises(RequestValidationError):
            await engine.get_context("case_123", "anything", limit=0)
        assert executor.calls == []

    async def test_context_to_dict(self, engine):
        await engine.vectorize("School called about attendance", {"type": "review", "caseId": "case_123"})

        context = await engine.get_context("case_123", "attendance")

        data = context.to_dict()
        assert data["source"] == "vector"
        assert data["documents"][0]["content"] == "School called about attendance"
        assert "embedding" not in data["documents"][0]


# ---------------------------------------------------------------------------
# RECOMMENDATIONS
# ---------------------------------------------------------------------------


class TestGenerateRecommendations:

    async def test_no_context_returns_default_without_model_call(self, engine, executor):
        result = await engine.generate_recommendations("case_123")

        assert result.is_default
        assert result.recommendations[0].title == DEFAULT_TITLE
        assert executor.calls_for(prompts.RECOMMENDATIONS_TEMPLATE) == []

    async def test_recommendations_from_summary(self, engine):
        result = await engine.generate_recommendations("case_123", summary="Attendance slipping.")

        assert [r.type for r in result.recommendations] == ["approach", "warning"]
        assert not result.is_default

    async def test_malformed_output_returns_default(self, engine, executor):
        executor.scripts[prompts.RECOMMENDATIONS_TEMPLATE] = "I'm not sure what to suggest."

        result = await engine.generate_recommendations("case_123", summary="x")

        assert result.is_default

    async def test_generation_failure_returns_default(self, engine, executor):
        executor.scripts[prompts.RECOMMENDATIONS_TEMPLATE] = TimeoutError()

        result = await engine.generate_recommendations("case_123", summary="x")

        assert result.is_default

    async def test_empty_list_returns_default(self, engine, executor):
        executor.scripts[prompts.RECOMMENDATIONS_TEMPLATE] = '{"recommendations": []}'

        result = await engine.generate_recommendations("case_123", summary="x")

        assert result.is_default

    async def test_rubric_evaluation_first(self, engine, executor):
        executor.scripts[prompts.RECOMMENDATIONS_TEMPLATE] = recommendations_json(
            APPROACH, rubric_evaluation_json(), WARNING
        )

        result = await engine.generate_recommendations("provider_1", summary="x", rubric=RUBRIC)

        assert isinstance(result.recommendations[0], RubricEvaluation)
        assert result.to_wire()["recommendations"][0]["overallGrade"] == 77

    @pytest.mark.parametrize(
        "rubric, missing",
        [
            ({"content": "## Safety\n## Engagement"}, ["name"]),
            ({"name": "Practice"}, ["content"]),
            ({"name": "Practice", "content": 42}, ["content"]),
            (["## Safety"], ["name", "content"]),
        ],
        ids=["no-name", "no-content", "content-not-text", "not-an-object"],
    )
    async def test_invalid_rubric_is_request_error(self, engine, executor, rubric, missing):
        with pytest.raises(RequestValidationError) as exc_info:
            await engine.generate_recommendations("case_123", summary="Some summary", rubric=rubric)

        assert isinstance(exc_info.value, CaseEngineError)
        assert exc_info.value.missing == missing
        assert executor.calls == []

    async def test_rubric_without_evaluation_returns_default(self, engine):
        result = await engine.generate_recommendations("provider_1", summary="x", rubric=RUBRIC)
        assert result.is_default


# ---------------------------------------------------------------------------
# CONSTRUCTION
# ---------------------------------------------------------------------------


class TestCreateEngine:

    def test_missing_key_fails_fast(self):
        with pytest.raises(ConfigurationError):
            create_engine(EngineConfig())

    def test_mock_ingestion_engine(self):
        engine = create_engine(
            EngineConfig(use_mock_embeddings=True, embedding_dim=64), require_generation=False
        )
        assert isinstance(engine.embeddings, MockEmbeddings)
        assert engine.embeddings.dimensions == 64

    async def test_context_manager(self):
        config = EngineConfig(use_mock_embeddings=True, embedding_dim=64)
        async with create_engine(config, require_generation=False) as engine:
            doc = await engine.vectorize("text", {"type": "coaching"})
        assert doc.metadata.case_id is None
