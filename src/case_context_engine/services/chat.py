"""
Provider chat - a grounded answer over a provider's whole caseload.

    provider context (documents + summary)
    + context for every case assigned to the provider
    -> one generation request -> free-text answer

Case contexts are assembled concurrently, at most
`max_concurrent_generations` at a time, since each one may call the model
for a summary. A case whose context fails is logged and left out; the
provider itself must exist.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from case_context_engine.core.errors import (
    CaseEngineError,
    MalformedModelOutputError,
    UpstreamGenerationError,
)
from case_context_engine.core.resilience import call_upstream
from case_context_engine.llm.prompts import CHAT_TEMPLATE, format_case_contexts, format_documents
from case_context_engine.observability.attributes import CHAT_CASE_COUNT, PROVIDER_ID
from case_context_engine.observability.tracer import get_tracer
from case_context_engine.records.store import CASES
from case_context_engine.schemas.chat import ChatRequest, ChatResponse

if TYPE_CHECKING:
    from case_context_engine.core.config import EngineConfig
    from case_context_engine.core.protocols import PromptExecutor, RecordStore
    from case_context_engine.schemas.context import CaseContext
    from case_context_engine.services.context import ContextAssembler

logger = logging.getLogger(__name__)

CONTEXT_LIMIT = 5
CONTEXT_THRESHOLD = 0.8


def case_label(case: dict[str, Any]) -> str:
    return str(case.get("familyName") or case.get("name") or case.get("id"))


@dataclass
class CaseloadContext:
    provider: CaseContext
    # (case record, its context), in record-store order
    cases: list[tuple[dict[str, Any], CaseContext]] = field(default_factory=list)

    @property
    def case_ids(self) -> list[str]:
        return [str(case["id"]) for case, _ in self.cases]


class ChatService:
    def __init__(
        self,
        context: ContextAssembler,
        executor: PromptExecutor,
        records: RecordStore,
        config: EngineConfig,
    ):
        self._context = context
        self._executor = executor
        self._records = records
        self._config = config
        self._semaphore = asyncio.Semaphore(config.max_concurrent_generations)

    async def _case_context(self, case: dict[str, Any], message: str) -> CaseContext | None:
        case_id = str(case["id"])
        async with self._semaphore:
            try:
                return await self._context.get_context(
                    case_id, message, CONTEXT_LIMIT, CONTEXT_THRESHOLD
                )
            except CaseEngineError as e:
                logger.warning("Leaving case %s out of provider chat: %s", case_id, e)
                return None

    async def caseload_context(self, provider_id: str, message: str) -> CaseloadContext:
        """
        Provider context plus the context of every case assigned to them.

        Raises:
            ProviderNotFoundError: the provider record does not exist
        """
        provider = await self._context.get_provider_context(
            provider_id, message, CONTEXT_LIMIT, CONTEXT_THRESHOLD
        )
        cases = await self._records.query(CASES, {"assignedWorker.id": provider_id})
        contexts = await asyncio.gather(*(self._case_context(case, message) for case in cases))
        return CaseloadContext(
            provider=provider,
            cases=[(case, ctx) for case, ctx in zip(cases, contexts) if ctx is not None],
        )

    async def ask(self, provider_id: str, message: str) -> ChatResponse:
        """
        Answer a provider's question using their caseload as context.

        Raises:
            ProviderNotFoundError: unknown provider
            UpstreamGenerationError: the model call failed after the retry
            MalformedModelOutputError: the model returned no text
        """
        tracer = get_tracer()
        with tracer.start_span("chat.ask", attributes={PROVIDER_ID: provider_id}) as span:
            caseload = await self.caseload_context(provider_id, message)
            span.set_attribute(CHAT_CASE_COUNT, len(caseload.cases))

            raw = await call_upstream(
                self._executor.execute,
                CHAT_TEMPLATE,
                {
                    "summary": caseload.provider.summary,
                    "case_contexts": format_case_contexts(
                        (case_label(case), ctx) for case, ctx in caseload.cases
                    ),
                    "documents": format_documents(caseload.provider.documents),
                    "message": message,
                },
                operation="provider chat",
                error_cls=UpstreamGenerationError,
                timeout_s=self._config.upstream_timeout_s,
                backoff_s=self._config.retry_backoff_s,
            )
            answer = (raw or "").strip()
            if not answer:
                raise MalformedModelOutputError("Model returned an empty chat response", raw_text=raw or "")
            span.set_status("ok")

        logger.info(
            "Answered chat for provider %s using %d case(s)", provider_id, len(caseload.cases)
        )
        return ChatResponse(response=answer, case_ids=caseload.case_ids)

    async def run_chat(self, request: ChatRequest | dict[str, Any]) -> ChatResponse:
        """
        Stateless entry point: {providerId, message}.

        Raises:
            RequestValidationError: providerId or message missing or blank
        """
        if not isinstance(request, ChatRequest):
            request = ChatRequest.from_payload(request)
        return await self.ask(request.provider_id, request.message)
