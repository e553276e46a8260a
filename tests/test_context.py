"""
Unit Tests for Context Assembly

Covers both branches of get_context:
- PRIMARY: search hits -> model summary -> summary cached on the case
- FALLBACK: no hits (or failed search) -> record-derived document

STAFF ENGINEER PATTERNS:
------------------------
1. Scripted executor keyed by template, so each prompt is asserted separately
2. Fallback logic is pure and tested without I/O
3. Failure injection at each boundary (search, generation)
"""

from unittest.mock import AsyncMock

import pytest

from conftest import ScriptedExecutor
from case_context_engine.core.errors import (
    CaseNotFoundError,
    ProviderNotFoundError,
    RequestValidationError,
    UpstreamSearchError,
)
from case_context_engine.llm import prompts
from case_context_engine.records.store import CASES
from case_context_engine.retrieval.document import EntityType
from case_context_engine.services.context import (
    NO_SUMMARY,
    ContextAssembler,
    fallback_case_context,
    fallback_summary,
)
from case_context_engine.services.search import SimilaritySearch
from case_context_engine.services.vectorization import VectorizationService

SUMMARY = "Placement is stable; school attendance needs follow-up."


@pytest.fixture
def search(embeddings, vector_store, config):
    return SimilaritySearch(embeddings, vector_store, config)


@pytest.fixture
def assembler(search, executor, records, config):
    return ContextAssembler(search, executor, records, config)


@pytest.fixture
async def seeded(embeddings, vector_store, config):
    vectorizer = VectorizationService(embeddings, vector_store, config)
    await vectorizer.vectorize(
        "School reported three missed days this month",
        {"type": "review", "caseId": "case_123"},
    )
    await vectorizer.vectorize(
        "Dana follows up on every referral within a day",
        {"type": "review", "providerId": "provider_1"},
    )
    return vector_store


# ---------------------------------------------------------------------------
# FALLBACK HELPERS (pure)
# ---------------------------------------------------------------------------


class TestFallbackSummary:

    def test_prefers_stored_summary(self):
        record = {"summary": "  Stored.  ", "notes": [{"content": "note"}]}
        assert fallback_summary(record) == "Stored."

    def test_then_first_note(self):
        assert fallback_summary({"notes": [{"content": "First"}, {"content": "Second"}]}) == "First"
        assert fallback_summary({"notes": ["plain string note"]}) == "plain string note"

    def test_then_placeholder(self):
        assert fallback_summary({"summary": "   ", "notes": []}) == NO_SUMMARY
        assert fallback_summary({}) == NO_SUMMARY

    def test_fallback_document_is_rendered_from_case(self, case_record):
        context = fallback_case_context(case_record)

        assert context.source == "record"
        assert len(context.documents) == 1
        doc = context.documents[0]
        assert doc.id == "case_123"
        assert doc.metadata.type is EntityType.CASE
        assert "Case Type: foster_care" in doc.content
        assert doc.embedding is None
        assert context.summary == "Initial home visit went well."


# ---------------------------------------------------------------------------
# PRIMARY BRANCH
# ---------------------------------------------------------------------------


class TestPrimaryBranch:

    async def test_summary_from_model_and_cached(self, assembler, seeded, records, executor):
        context = await assembler.get_context("case_123", "school attendance")

        assert context.source == "vector"
        assert context.summary == SUMMARY
        assert all(d.metadata.case_id == "case_123" for d in context.documents)

        stored = await records.read(CASES, "case_123")
        assert stored["summary"] == SUMMARY

        (call,) = executor.calls_for(prompts.CASE_SUMMARY_TEMPLATE)
        assert call["query"] == "school attendance"
        assert "missed days" in call["documents"]

    async def test_generation_failure_keeps_documents(self, search, records, config, seeded):
        executor = ScriptedExecutor({prompts.CASE_SUMMARY_TEMPLATE: ConnectionError("model down")})
        assembler = ContextAssembler(search, executor, records, config)

        context = await assembler.get_context("case_123", "school attendance")

        assert context.source == "vector"
        assert context.documents
        assert context.summary == "Initial home visit went well."
        stored = await records.read(CASES, "case_123")
        assert "summary" not in stored

    async def test_blank_summary_uses_fallback(self, search, records, config, seeded):
        executor = ScriptedExecutor({prompts.CASE_SUMMARY_TEMPLATE: "   "})
        assembler = ContextAssembler(search, executor, records, config)

        context = await assembler.get_context("case_123", "school")

        assert context.summary == "Initial home visit went well."


# ---------------------------------------------------------------------------
# FALLBACK BRANCH
# ---------------------------------------------------------------------------


class TestFallbackBranch:

    async def test_no_documents_uses_record(self, assembler, executor):
        context = await assembler.get_context("case_123", "anything")

        assert context.source == "record"
        assert context.documents[0].id == "case_123"
        assert context.summary == "Initial home visit went well."
        assert executor.calls == []

    async def test_failed_search_uses_record(self, executor, records, config):
        search = AsyncMock()
        search.search.side_effect = UpstreamSearchError("collection offline")
        assembler = ContextAssembler(search, executor, records, config)

        context = await assembler.get_context("case_123", "anything")

        assert context.source == "record"

    async def test_case_without_notes_gets_placeholder(self, assembler):
        context = await assembler.get_context("case_no_worker", "anything")
        assert context.summary == NO_SUMMARY
        assert context.documents[0].content

    async def test_missing_case_is_not_found(self, assembler):
        with pytest.raises(CaseNotFoundError):
            await assembler.get_context("missing", "q")


# ---------------------------------------------------------------------------
# PROVIDER CONTEXT
# ---------------------------------------------------------------------------


class TestProviderContext:

    async def test_provider_summary_not_persisted(self, assembler, seeded, records, executor):
        context = await assembler.get_provider_context("provider_1", "referrals")

        assert context.source == "vector"
        assert context.summary == "Dana keeps thorough notes and follows up quickly."
        assert all(d.metadata.provider_id == "provider_1" for d in context.documents)
        assert executor.calls_for(prompts.CASE_SUMMARY_TEMPLATE) == []
        assert "summary" not in await records.read("providers", "provider_1")

    async def test_provider_fallback(self, assembler):
        context = await assembler.get_provider_context("provider_1", "q")

        assert context.source == "record"
        assert "Provider: Dana Lee" in context.documents[0].content
        assert context.summary == NO_SUMMARY

    async def test_missing_provider(self, assembler):
        with pytest.raises(ProviderNotFoundError):
            await assembler.get_provider_context("ghost", "q")


# ---------------------------------------------------------------------------
# REQUEST VALIDATION
# ---------------------------------------------------------------------------


class TestLimitValidation:
    """A bad limit is the caller's error, not a search failure to fall back from."""

    @pytest.mark.parametrize("limit", [0, -3])
    async def test_case_context_rejects_limit(self, limit, records, config, executor):
        search = AsyncMock()
        assembler = ContextAssembler(search, executor, records, config)

        with pytest.raises(RequestValidationError) as exc_info:
            await assembler.get_context("case_123", "anything", limit=limit)

        assert exc_info.value.missing == ["limit"]
        search.search.assert_not_called()
        assert executor.calls == []

    async def test_provider_context_rejects_limit(self, assembler):
        with pytest.raises(RequestValidationError):
            await assembler.get_provider_context("provider_1", "anything", limit=0)

    async def test_limit_checked_before_record_lookup(self, assembler):
        with pytest.raises(RequestValidationError):
            await assembler.get_context("missing", "q", limit=0)
