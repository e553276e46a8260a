"""
Vectorization Service - turn text into a stored VectorizedDocument.

    content + metadata
        -> collection lookup (UnsupportedTypeError before any embedding call)
        -> embedding (call_upstream: timeout + one retry)
        -> fresh id + timestamp
        -> insert into the type's collection
        -> schedule a metadata refresh for the case (not awaited)
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import TYPE_CHECKING, Any, Callable

from case_context_engine.core.errors import UnsupportedTypeError, UpstreamEmbeddingError
from case_context_engine.core.resilience import call_upstream
from case_context_engine.observability.attributes import DOCUMENT_ID, vectorize_attributes
from case_context_engine.observability.tracer import get_tracer
from case_context_engine.retrieval.document import (
    DocumentMetadata,
    EntityType,
    VectorizedDocument,
    utc_now,
)
from case_context_engine.services.rendering import render_record

if TYPE_CHECKING:
    from case_context_engine.core.config import EngineConfig
    from case_context_engine.core.protocols import EmbeddingProvider
    from case_context_engine.retrieval.store import VectorStore

logger = logging.getLogger(__name__)


def coerce_metadata(metadata: DocumentMetadata | dict[str, Any]) -> DocumentMetadata:
    """Accept DocumentMetadata or its camelCase wire dict."""
    if isinstance(metadata, DocumentMetadata):
        return metadata
    entity_type = EntityType.parse(metadata.get("type", ""))
    if entity_type is None:
        raise UnsupportedTypeError(str(metadata.get("type")))
    return DocumentMetadata.from_dict({**metadata, "type": entity_type.value})


class VectorizationService:
    def __init__(
        self,
        embeddings: EmbeddingProvider,
        vector_store: VectorStore,
        config: EngineConfig,
        schedule_refresh: Callable[[str], Any] | None = None,
    ):
        self._embeddings = embeddings
        self._store = vector_store
        self._config = config
        self._schedule_refresh = schedule_refresh

    async def vectorize(
        self,
        content: str,
        metadata: DocumentMetadata | dict[str, Any],
    ) -> VectorizedDocument:
        """
        Embed and persist one document.

        Raises:
            UnsupportedTypeError: metadata.type has no collection
            UpstreamEmbeddingError: embedding failed after the retry
        """
        meta = coerce_metadata(metadata)
        collection = self._store.collection_for(meta.type)

        tracer = get_tracer()
        with tracer.start_span(
            "vectorize",
            attributes=vectorize_attributes(meta.type.value, meta.case_id),
        ) as span:
            embedding = await call_upstream(
                self._embeddings.embed,
                content,
                operation="embedding",
                error_cls=UpstreamEmbeddingError,
                timeout_s=self._config.upstream_timeout_s,
                backoff_s=self._config.retry_backoff_s,
            )

            doc = VectorizedDocument(
                id=str(uuid.uuid4()),
                content=content,
                metadata=dataclasses.replace(meta, timestamp=utc_now()),
                embedding=embedding,
            )
            await collection.create(doc)
            span.set_attribute(DOCUMENT_ID, doc.id)
            span.set_status("ok")

        logger.info("Vectorized %s document %s", meta.type.value, doc.id)

        if meta.case_id and self._schedule_refresh is not None:
            self._schedule_refresh(meta.case_id)

        return doc

    async def vectorize_record(
        self,
        entity_type: EntityType | str,
        record: dict[str, Any],
        category: str | None = None,
    ) -> VectorizedDocument:
        """
        Render a stored record to text and vectorize it.

        caseId/providerId are taken from the record. A case record is its
        own caseId; a provider record is its own providerId.
        """
        parsed = EntityType.parse(entity_type)
        if parsed is None:
            raise UnsupportedTypeError(str(entity_type))

        case_id = record.get("caseId")
        provider_id = record.get("providerId")
        if parsed is EntityType.CASE:
            case_id = record.get("id")
        elif parsed is EntityType.PROVIDER:
            provider_id = record.get("id")

        metadata = DocumentMetadata(
            type=parsed,
            case_id=case_id,
            provider_id=provider_id,
            category=category,
            tags=frozenset(record.get("tags") or ()),
        )
        return await self.vectorize(render_record(parsed, record), metadata)
