"""
Engine facade - explicit construction, wiring and teardown.

Every client (embeddings, model, stores) is built once from EngineConfig
and passed into the services. Nothing is created at import time, and tests
construct the engine directly with doubles:

    engine = CaseContextEngine(
        config=EngineConfig(),
        embeddings=MockEmbeddings(dimensions=64),
        vector_store=get_vector_store(),
        records=InMemoryRecordStore(...),
        executor=fake_executor,
    )

Production code uses the factory and the async context manager:

    async with create_engine(EngineConfig.from_env()) as engine:
        context = await engine.get_context("case-1", "school attendance")

Background metadata refreshes are tracked; close() waits for them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from case_context_engine.core.errors import MalformedRecommendationError, UpstreamError
from case_context_engine.embeddings.openai_embeddings import get_embedding_provider
from case_context_engine.llm.executor import get_prompt_executor
from case_context_engine.records.store import get_record_store
from case_context_engine.retrieval.store import VectorStoreConfig, get_vector_store
from case_context_engine.schemas.base import validate_request
from case_context_engine.schemas.context import CaseContext
from case_context_engine.schemas.recommendations import (
    RecommendationSet,
    Rubric,
    default_recommendation_set,
)
from case_context_engine.services.chat import ChatService
from case_context_engine.services.coaching import CoachingService
from case_context_engine.services.context import ContextAssembler
from case_context_engine.services.metadata import MetadataUpdater
from case_context_engine.services.recommendations import RecommendationSynthesizer
from case_context_engine.services.search import SearchOptions, SimilaritySearch
from case_context_engine.services.simulation import SimulationService, SimulationSession
from case_context_engine.services.vectorization import VectorizationService

if TYPE_CHECKING:
    from case_context_engine.core.config import EngineConfig
    from case_context_engine.core.protocols import EmbeddingProvider, PromptExecutor, RecordStore
    from case_context_engine.retrieval.document import (
        DocumentMetadata,
        EntityType,
        VectorizedDocument,
    )
    from case_context_engine.retrieval.store import VectorStore
    from case_context_engine.schemas.chat import ChatRequest, ChatResponse
    from case_context_engine.schemas.coaching import CoachingRequest
    from case_context_engine.schemas.context import CaseMetadata
    from case_context_engine.schemas.recommendations import Recommendation
    from case_context_engine.schemas.simulation import (
        Scenario,
        SimulationEvaluation,
        SimulationRequest,
    )

logger = logging.getLogger(__name__)


class CaseContextEngine:
    """Context retrieval and recommendation synthesis for case management."""

    def __init__(
        self,
        config: EngineConfig,
        embeddings: EmbeddingProvider,
        vector_store: VectorStore,
        records: RecordStore,
        executor: PromptExecutor,
    ):
        self.config = config
        self.embeddings = embeddings
        self.vector_store = vector_store
        self.records = records
        self.executor = executor

        self._background: set[asyncio.Task] = set()

        self._metadata = MetadataUpdater(records, vector_store)
        self._vectorizer = VectorizationService(
            embeddings, vector_store, config, schedule_refresh=self._schedule_refresh
        )
        self._search = SimilaritySearch(embeddings, vector_store, config)
        self._context = ContextAssembler(self._search, executor, records, config)
        self._synthesizer = RecommendationSynthesizer(executor, config)
        self._coaching = CoachingService(
            self._context, self._synthesizer, config.max_concurrent_generations
        )
        self._simulation = SimulationService(self._context, executor, records, config)
        self._chat = ChatService(self._context, executor, records, config)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def start(self) -> None:
        """Connect stores and make sure their schema exists."""
        for resource in (self.vector_store, self.records):
            if hasattr(resource, "connect"):
                await resource.connect()
            if hasattr(resource, "create_schema"):
                await resource.create_schema()

    async def close(self) -> None:
        """Wait for background refreshes, then release every client."""
        await self.wait_for_background()
        for resource in (self.embeddings, self.executor, self.vector_store, self.records):
            if hasattr(resource, "close"):
                await resource.close()

    async def __aenter__(self) -> "CaseContextEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -----------------------------------------------------------------------
    # Background metadata refresh
    # -----------------------------------------------------------------------

    def _schedule_refresh(self, case_id: str) -> asyncio.Task:
        task = asyncio.create_task(self._metadata.refresh(case_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_for_background(self) -> None:
        """Wait until every scheduled metadata refresh has finished."""
        while self._background:
            await asyncio.gather(*list(self._background))

    async def refresh_case_metadata(self, case_id: str) -> CaseMetadata | None:
        return await self._metadata.refresh(case_id)

    # -----------------------------------------------------------------------
    # Ingestion and retrieval
    # -----------------------------------------------------------------------

    async def vectorize(
        self,
        content: str,
        metadata: DocumentMetadata | dict[str, Any],
    ) -> VectorizedDocument:
        return await self._vectorizer.vectorize(content, metadata)

    async def vectorize_record(
        self,
        entity_type: EntityType | str,
        record: dict[str, Any],
        category: str | None = None,
    ) -> VectorizedDocument:
        return await self._vectorizer.vectorize_record(entity_type, record, category)

    async def search(
        self,
        query: str,
        case_id: str | None = None,
        provider_id: str | None = None,
        limit: int = 5,
        threshold: float | None = None,
    ) -> list[VectorizedDocument]:
        return await self._search.search(
            query,
            SearchOptions(case_id=case_id, provider_id=provider_id, limit=limit, threshold=threshold),
        )

    async def get_context(
        self,
        case_id: str,
        query: str,
        limit: int = 5,
        threshold: float | None = None,
    ) -> CaseContext:
        return await self._context.get_context(case_id, query, limit, threshold)

    async def get_provider_context(
        self,
        provider_id: str,
        query: str,
        limit: int = 5,
        threshold: float | None = None,
    ) -> CaseContext:
        return await self._context.get_provider_context(provider_id, query, limit, threshold)

    # -----------------------------------------------------------------------
    # Recommendations
    # -----------------------------------------------------------------------

    async def generate_recommendations(
        self,
        target_id: str,
        documents: list[VectorizedDocument] | None = None,
        summary: str = "",
        rubric: Rubric | dict[str, Any] | None = None,
    ) -> RecommendationSet:
        """
        Recommendations for a case or provider. Never empty.

        Any synthesizer failure, or an empty result, becomes the single
        default "General Case Management" recommendation.

        Raises:
            RequestValidationError: the rubric payload is missing fields
        """
        documents = documents or []
        if rubric is not None and not isinstance(rubric, Rubric):
            rubric = validate_request(Rubric, rubric, ["name", "content"])

        if not documents and not (summary or "").strip():
            logger.info("No context for %s, returning default recommendation", target_id)
            return default_recommendation_set()

        context = CaseContext(documents=documents, summary=summary)
        try:
            recommendations = await self._synthesizer.synthesize(target_id, context, rubric)
        except (UpstreamError, MalformedRecommendationError) as e:
            logger.warning("Recommendation synthesis failed for %s: %s", target_id, e)
            return default_recommendation_set()

        if not recommendations:
            return default_recommendation_set()
        return RecommendationSet(recommendations=recommendations)

    async def coach_provider(
        self,
        request: CoachingRequest | dict[str, Any],
    ) -> list[Recommendation]:
        return await self._coaching.coach_provider(request)

    # -----------------------------------------------------------------------
    # Simulation
    # -----------------------------------------------------------------------

    def simulation_session(self, case_id: str, provider_id: str | None = None) -> SimulationSession:
        return self._simulation.session(case_id, provider_id)

    async def run_simulation(
        self,
        request: SimulationRequest | dict[str, Any],
    ) -> Scenario | SimulationEvaluation:
        return await self._simulation.run_simulation(request)

    # -----------------------------------------------------------------------
    # Provider chat
    # -----------------------------------------------------------------------

    async def ask(self, provider_id: str, message: str) -> ChatResponse:
        return await self._chat.ask(provider_id, message)

    async def run_chat(self, request: ChatRequest | dict[str, Any]) -> ChatResponse:
        return await self._chat.run_chat(request)


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def create_engine(config: EngineConfig, require_generation: bool = True) -> CaseContextEngine:
    """
    Build an engine from configuration.

    Raises:
        ConfigurationError: missing credentials or endpoints
    """
    config.validate(require_generation=require_generation)

    embeddings = get_embedding_provider(
        use_mock=config.use_mock_embeddings,
        model=config.embedding_model,
        api_key=config.openai_api_key,
        dimensions=config.embedding_dim,
    )
    vector_store = get_vector_store(
        use_postgres=config.use_postgres,
        config=VectorStoreConfig(
            connection_string=config.database_url or VectorStoreConfig.connection_string,
            embedding_dim=config.embedding_dim,
        ),
    )
    records = get_record_store(
        use_postgres=config.use_postgres,
        connection_string=config.database_url,
    )
    executor = get_prompt_executor(
        model=config.chat_model,
        temperature=config.chat_temperature,
        api_key=config.openai_api_key,
    )
    return CaseContextEngine(config, embeddings, vector_store, records, executor)
