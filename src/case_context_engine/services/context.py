"""
Context Assembler - documents plus a narrative summary for a case or provider.

Two explicit branches:

PRIMARY (source="vector")
    similarity search scoped to the case -> non-empty
    -> model summary (patterns, concerns, next steps)
    -> summary cached on the case record's `summary` field

FALLBACK (source="record")
    search empty or failed
    -> one synthetic document rendered from the record itself
    -> summary = stored summary, else first note, else "No summary available"

Search is best-effort: apart from a bad `limit`, a missing case is the only
error for get_context. If the summary call fails after a successful search,
the found documents are kept and the fallback summary is used.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from case_context_engine.core.errors import (
    CaseNotFoundError,
    ProviderNotFoundError,
    RequestValidationError,
    UpstreamError,
    UpstreamGenerationError,
)
from case_context_engine.core.resilience import call_upstream
from case_context_engine.llm.prompts import (
    CASE_SUMMARY_TEMPLATE,
    PROVIDER_SUMMARY_TEMPLATE,
    format_documents,
)
from case_context_engine.observability.attributes import (
    CONTEXT_DOCUMENT_COUNT,
    CONTEXT_SOURCE,
    search_attributes,
)
from case_context_engine.observability.tracer import get_tracer
from case_context_engine.records.store import CASES, PROVIDERS
from case_context_engine.retrieval.document import (
    DocumentMetadata,
    EntityType,
    VectorizedDocument,
)
from case_context_engine.schemas.context import CaseContext
from case_context_engine.services.rendering import first_note, render_case, render_provider
from case_context_engine.services.search import SearchOptions

if TYPE_CHECKING:
    from case_context_engine.core.config import EngineConfig
    from case_context_engine.core.protocols import PromptExecutor, RecordStore
    from case_context_engine.services.search import SimilaritySearch

logger = logging.getLogger(__name__)

NO_SUMMARY = "No summary available"


# ---------------------------------------------------------------------------
# FALLBACK BRANCH (pure)
# ---------------------------------------------------------------------------


def fallback_summary(record: dict[str, Any]) -> str:
    """Stored summary, else first note, else a fixed placeholder. Never empty."""
    stored = record.get("summary")
    if isinstance(stored, str) and stored.strip():
        return stored.strip()
    return first_note(record) or NO_SUMMARY


def fallback_case_context(case: dict[str, Any]) -> CaseContext:
    """Context built from the case record alone."""
    doc = VectorizedDocument(
        id=str(case["id"]),
        content=render_case(case) or NO_SUMMARY,
        metadata=DocumentMetadata(type=EntityType.CASE, case_id=str(case["id"])),
    )
    return CaseContext(documents=[doc], summary=fallback_summary(case), source="record")


def fallback_provider_context(provider: dict[str, Any]) -> CaseContext:
    """Context built from the provider record alone."""
    doc = VectorizedDocument(
        id=str(provider["id"]),
        content=render_provider(provider) or NO_SUMMARY,
        metadata=DocumentMetadata(type=EntityType.PROVIDER, provider_id=str(provider["id"])),
    )
    return CaseContext(documents=[doc], summary=fallback_summary(provider), source="record")


def check_limit(limit: int) -> None:
    if limit < 1:
        raise RequestValidationError("limit must be at least 1", missing=["limit"])


# ---------------------------------------------------------------------------
# ASSEMBLER
# ---------------------------------------------------------------------------


class ContextAssembler:
    def __init__(
        self,
        search: SimilaritySearch,
        executor: PromptExecutor,
        records: RecordStore,
        config: EngineConfig,
    ):
        self._search = search
        self._executor = executor
        self._records = records
        self._config = config

    async def _search_or_empty(self, query: str, options: SearchOptions) -> list[VectorizedDocument]:
        try:
            return await self._search.search(query, options)
        except UpstreamError as e:
            logger.warning("Similarity search failed, using record fallback: %s", e)
            return []

    async def _summarize(self, template: str, query: str, documents: list[VectorizedDocument]) -> str:
        try:
            summary = await call_upstream(
                self._executor.execute,
                template,
                {"query": query, "documents": format_documents(documents)},
                operation="context summary",
                error_cls=UpstreamGenerationError,
                timeout_s=self._config.upstream_timeout_s,
                backoff_s=self._config.retry_backoff_s,
            )
        except UpstreamError as e:
            logger.warning("Summary generation failed, using stored summary: %s", e)
            return ""
        return (summary or "").strip()

    async def get_context(
        self,
        case_id: str,
        query: str,
        limit: int = 5,
        threshold: float | None = None,
    ) -> CaseContext:
        """
        Assemble context for a case.

        Raises:
            RequestValidationError: limit below 1 (a bad request, not a search failure)
            CaseNotFoundError: the case record does not exist
        """
        check_limit(limit)
        case = await self._records.read(CASES, case_id)
        if case is None:
            raise CaseNotFoundError(case_id)

        tracer = get_tracer()
        with tracer.start_span(
            "context.case",
            attributes=search_attributes(limit, threshold, case_id=case_id),
        ) as span:
            documents = await self._search_or_empty(
                query, SearchOptions(case_id=case_id, limit=limit, threshold=threshold)
            )

            if not documents:
                context = fallback_case_context(case)
            else:
                summary = await self._summarize(CASE_SUMMARY_TEMPLATE, query, documents)
                if summary:
                    await self._records.patch(CASES, case_id, {"summary": summary})
                else:
                    summary = fallback_summary(case)
                context = CaseContext(documents=documents, summary=summary, source="vector")

            span.set_attribute(CONTEXT_SOURCE, context.source)
            span.set_attribute(CONTEXT_DOCUMENT_COUNT, len(context.documents))
            span.set_status("ok")

        logger.info(
            "Context for case %s: %d document(s) from %s",
            case_id, len(context.documents), context.source,
        )
        return context

    async def get_provider_context(
        self,
        provider_id: str,
        query: str,
        limit: int = 5,
        threshold: float | None = None,
    ) -> CaseContext:
        """
        Assemble context for a provider. The summary is not persisted.

        Raises:
            RequestValidationError: limit below 1
            ProviderNotFoundError: the provider record does not exist
        """
        check_limit(limit)
        provider = await self._records.read(PROVIDERS, provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)

        tracer = get_tracer()
        with tracer.start_span(
            "context.provider",
            attributes=search_attributes(limit, threshold, provider_id=provider_id),
        ) as span:
            documents = await self._search_or_empty(
                query, SearchOptions(provider_id=provider_id, limit=limit, threshold=threshold)
            )

            if not documents:
                context = fallback_provider_context(provider)
            else:
                summary = await self._summarize(PROVIDER_SUMMARY_TEMPLATE, query, documents)
                context = CaseContext(
                    documents=documents,
                    summary=summary or fallback_summary(provider),
                    source="vector",
                )

            span.set_attribute(CONTEXT_SOURCE, context.source)
            span.set_attribute(CONTEXT_DOCUMENT_COUNT, len(context.documents))
            span.set_status("ok")

        return context
