"""
Similarity Search Orchestrator.

One query embedding, one ranked query per collection issued concurrently,
then a single merged ranking:

    embed(query)
      -> gather(collection.query(...) for every collection)
      -> merge, sort ascending by distance
      -> truncate to limit
      -> drop distance > threshold   (after truncation, on purpose)

Any collection failure fails the whole search. Partial rankings would
silently change which documents a summary is built from.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from case_context_engine.core.errors import RequestValidationError, UpstreamSearchError
from case_context_engine.core.resilience import call_upstream
from case_context_engine.observability.attributes import (
    SEARCH_COLLECTIONS,
    SEARCH_RESULT_COUNT,
    search_attributes,
)
from case_context_engine.observability.tracer import get_tracer

if TYPE_CHECKING:
    from case_context_engine.core.config import EngineConfig
    from case_context_engine.core.protocols import EmbeddingProvider
    from case_context_engine.retrieval.document import VectorizedDocument
    from case_context_engine.retrieval.store import VectorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOptions:
    """
    Search scope and cut-offs.

    threshold is a cosine *distance* ceiling: results with
    distance > threshold are dropped.
    """

    case_id: str | None = None
    provider_id: str | None = None
    limit: int = 5
    threshold: float | None = None


def rank(
    per_collection: list[list[VectorizedDocument]],
    limit: int,
    threshold: float | None = None,
) -> list[VectorizedDocument]:
    """Merge per-collection results, truncate, then apply the threshold."""
    merged = [doc for docs in per_collection for doc in docs]
    merged.sort(key=lambda d: d.distance if d.distance is not None else float("inf"))
    top = merged[:limit]
    if threshold is None:
        return top
    return [doc for doc in top if doc.distance is not None and doc.distance <= threshold]


class SimilaritySearch:
    def __init__(
        self,
        embeddings: EmbeddingProvider,
        vector_store: VectorStore,
        config: EngineConfig,
    ):
        self._embeddings = embeddings
        self._store = vector_store
        self._config = config

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[VectorizedDocument]:
        """
        Nearest documents across all collections, nearest first.

        Raises:
            UpstreamSearchError: the query embedding or any collection query failed
        """
        options = options or SearchOptions()
        if options.limit < 1:
            raise RequestValidationError("limit must be at least 1", missing=["limit"])

        tracer = get_tracer()
        with tracer.start_span(
            "search",
            attributes=search_attributes(
                options.limit, options.threshold, options.case_id, options.provider_id
            ),
        ) as span:
            embedding = await call_upstream(
                self._embeddings.embed,
                query,
                operation="query embedding",
                error_cls=UpstreamSearchError,
                timeout_s=self._config.upstream_timeout_s,
                backoff_s=self._config.retry_backoff_s,
            )

            collections = self._store.collections
            span.set_attribute(SEARCH_COLLECTIONS, len(collections))
            results = await asyncio.gather(
                *(
                    collection.query(
                        embedding,
                        options.limit,
                        case_id=options.case_id,
                        provider_id=options.provider_id,
                    )
                    for collection in collections
                ),
                return_exceptions=True,
            )

            for collection, result in zip(collections, results):
                if isinstance(result, BaseException):
                    span.record_exception(result)
                    span.set_status("error", str(result))
                    raise UpstreamSearchError(
                        f"{collection.entity_type.value} collection query failed: {result}"
                    ) from result

            documents = rank(results, options.limit, options.threshold)
            span.set_attribute(SEARCH_RESULT_COUNT, len(documents))
            span.set_status("ok")

        logger.debug(
            "Search returned %d document(s) (case=%s, provider=%s)",
            len(documents), options.case_id, options.provider_id,
        )
        return documents
