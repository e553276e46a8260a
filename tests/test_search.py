"""
Unit Tests for Similarity Search

STAFF ENGINEER PATTERNS:
------------------------
1. Test the pure ranking function separately from I/O
2. Prove concurrency with a barrier that sequential code could never pass
3. Real MockEmbeddings for end-to-end ranking properties
"""

import asyncio
from unittest.mock import AsyncMock

import numpy as np
import pytest

from case_context_engine.core.errors import RequestValidationError, UpstreamSearchError
from case_context_engine.retrieval.document import (
    DocumentMetadata,
    EntityType,
    VectorizedDocument,
)
from case_context_engine.retrieval.store import InMemoryCollection, VectorStore
from case_context_engine.services.search import SearchOptions, SimilaritySearch, rank
from case_context_engine.services.vectorization import VectorizationService


def scored(doc_id: str, distance: float, entity_type=EntityType.REVIEW) -> VectorizedDocument:
    return VectorizedDocument(
        id=doc_id,
        content=doc_id,
        metadata=DocumentMetadata(type=entity_type),
        distance=distance,
    )


class BarrierCollection:
    """Collection whose query only returns once every sibling query has started."""

    def __init__(self, entity_type, barrier: dict):
        self.entity_type = entity_type
        self._barrier = barrier

    async def create(self, doc):
        raise NotImplementedError

    async def query(self, embedding, limit, case_id=None, provider_id=None):
        self._barrier["started"] += 1
        if self._barrier["started"] == self._barrier["expected"]:
            self._barrier["event"].set()
        await self._barrier["event"].wait()
        return [scored(f"{self.entity_type.value}-1", 0.1)]

    async def count(self, case_id=None, provider_id=None):
        return 0


class FailingCollection(InMemoryCollection):
    async def query(self, embedding, limit, case_id=None, provider_id=None):
        raise ConnectionError("collection offline")


# ---------------------------------------------------------------------------
# RANK (pure)
# ---------------------------------------------------------------------------


class TestRank:

    def test_merges_and_sorts_ascending(self):
        result = rank(
            [[scored("a", 0.4), scored("b", 0.9)], [scored("c", 0.1, EntityType.CASE)]],
            limit=10,
        )
        assert [d.id for d in result] == ["c", "a", "b"]

    def test_truncates_to_limit(self):
        result = rank([[scored(str(i), i / 10) for i in range(8)]], limit=3)
        assert [d.id for d in result] == ["0", "1", "2"]

    def test_threshold_applies_after_truncation(self):
        docs = [[scored("a", 0.2), scored("b", 0.6), scored("c", 0.3)]]

        result = rank(docs, limit=2, threshold=0.25)

        # top-2 is [a, c]; only a survives the threshold
        assert [d.id for d in result] == ["a"]

    def test_threshold_is_inclusive(self):
        assert [d.id for d in rank([[scored("a", 0.5)]], limit=1, threshold=0.5)] == ["a"]

    def test_empty(self):
        assert rank([[], []], limit=5) == []


# ---------------------------------------------------------------------------
# SEARCH
# ---------------------------------------------------------------------------


class TestSimilaritySearch:

    @pytest.fixture
    def search(self, embeddings, vector_store, config):
        return SimilaritySearch(embeddings, vector_store, config)

    @pytest.fixture
    async def seeded(self, embeddings, vector_store, config, case_record):
        vectorizer = VectorizationService(embeddings, vector_store, config)
        await vectorizer.vectorize_record("case", case_record)
        await vectorizer.vectorize(
            "Reviewed school attendance records with the counselor",
            {"type": "review", "caseId": "case_123"},
        )
        await vectorizer.vectorize(
            "Caregiver asked about respite options on weekends",
            {"type": "caregiver", "caseId": "case_other"},
        )
        return vector_store

    async def test_case_document_ranks_first_for_its_type(self, search, seeded):
        results = await search.search("foster care", SearchOptions(limit=3))

        assert results[0].metadata.type is EntityType.CASE
        assert results[0].metadata.case_id == "case_123"

    async def test_results_are_ordered_and_limited(self, search, seeded):
        results = await search.search("school attendance", SearchOptions(limit=2))

        assert len(results) == 2
        assert results[0].distance <= results[1].distance
        assert "school attendance" in results[0].content

    async def test_identical_content_has_zero_distance(self, search, seeded):
        text = "Caregiver asked about respite options on weekends"
        results = await search.search(text, SearchOptions(limit=1))
        assert results[0].content == text
        assert results[0].distance == pytest.approx(0.0, abs=1e-5)

    async def test_case_filter(self, search, seeded):
        results = await search.search("respite", SearchOptions(case_id="case_123", limit=10))
        assert results
        assert all(d.metadata.case_id == "case_123" for d in results)

    async def test_threshold_drops_far_documents(self, search, seeded):
        results = await search.search(
            "Reviewed school attendance records with the counselor",
            SearchOptions(limit=10, threshold=0.01),
        )
        assert [d.metadata.type for d in results] == [EntityType.REVIEW]

    async def test_empty_store_returns_empty(self, search):
        assert await search.search("anything") == []

    async def test_limit_must_be_positive(self, search):
        with pytest.raises(RequestValidationError):
            await search.search("q", SearchOptions(limit=0))

    async def test_collections_are_queried_concurrently(self, embeddings, config):
        barrier = {"started": 0, "expected": len(EntityType), "event": asyncio.Event()}
        store = VectorStore({t: BarrierCollection(t, barrier) for t in EntityType})
        search = SimilaritySearch(embeddings, store, config)

        results = await asyncio.wait_for(search.search("q", SearchOptions(limit=10)), timeout=1)

        assert len(results) == len(EntityType)

    async def test_any_collection_failure_fails_search(self, embeddings, config):
        collections = {t: InMemoryCollection(t) for t in EntityType}
        collections[EntityType.CHILD] = FailingCollection(EntityType.CHILD)
        search = SimilaritySearch(embeddings, VectorStore(collections), config)

        with pytest.raises(UpstreamSearchError, match="child"):
            await search.search("q")

    async def test_embedding_failure_is_search_error(self, vector_store, config):
        embeddings = AsyncMock()
        embeddings.embed.side_effect = ConnectionError("down")
        search = SimilaritySearch(embeddings, vector_store, config)

        with pytest.raises(UpstreamSearchError):
            await search.search("q")

    async def test_query_embedding_is_reused_for_every_collection(self, vector_store, config):
        embeddings = AsyncMock()
        embeddings.embed.return_value = np.ones(8, dtype=np.float32)
        search = SimilaritySearch(embeddings, vector_store, config)

        await search.search("q")

        embeddings.embed.assert_awaited_once_with("q")
