"""
Core protocols defining contracts for the entire system.

All infrastructure components implement these protocols,
enabling dependency injection and easy testing.

PATTERN: Protocol → Production impl → Test double → Factory
- EmbeddingProvider: OpenAIEmbeddings / MockEmbeddings
- VectorCollection:  PgVectorCollection / InMemoryCollection
- RecordStore:       PostgresRecordStore / InMemoryRecordStore
- PromptExecutor:    OpenAIPromptExecutor / any AsyncMock in tests

Every method that touches the network is a coroutine. The engine runs on a
single event loop and suspends at each external call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    import numpy as np

    from case_context_engine.retrieval.document import EntityType, VectorizedDocument


# ---------------------------------------------------------------------------
# EMBEDDING PROVIDER PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Contract for embedding generation.

    Implementations:
    - OpenAIEmbeddings (production)
    - MockEmbeddings (testing)
    """

    @property
    def dimensions(self) -> int:
        ...

    async def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        ...


# ---------------------------------------------------------------------------
# VECTOR COLLECTION PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class VectorCollection(Protocol):
    """
    Contract for one type-specific vector collection.

    Implementations:
    - PgVectorCollection (production with PostgreSQL + pgvector)
    - InMemoryCollection (testing/development)
    """

    entity_type: EntityType

    async def create(self, doc: VectorizedDocument) -> None:
        """Persist a new document. Documents are never updated in place."""
        ...

    async def query(
        self,
        embedding: np.ndarray,
        limit: int,
        case_id: str | None = None,
        provider_id: str | None = None,
    ) -> list[VectorizedDocument]:
        """Return up to `limit` documents ordered by ascending distance."""
        ...

    async def count(
        self,
        case_id: str | None = None,
        provider_id: str | None = None,
    ) -> int:
        """Count documents matching the filters."""
        ...


# ---------------------------------------------------------------------------
# RECORD STORE PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class RecordStore(Protocol):
    """
    Contract for the external document store holding case-management records.

    Only `summary` and `metadata` on case records are written by the engine;
    everything else is read-only input.
    """

    async def read(self, container: str, record_id: str) -> dict[str, Any] | None:
        """Read a record by id. Returns None if it does not exist."""
        ...

    async def query(self, container: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Return records whose (dotted-path) fields equal every filter value."""
        ...

    async def patch(self, container: str, record_id: str, fields: dict[str, Any]) -> None:
        """Add or replace top-level fields on an existing record."""
        ...

    async def upsert(self, container: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert or replace a whole record."""
        ...


# ---------------------------------------------------------------------------
# PROMPT EXECUTOR PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class PromptExecutor(Protocol):
    """
    Narrow boundary around the generative model.

    Orchestration code never talks to the model SDK directly; it renders a
    template through execute() so tests can substitute a fake.
    """

    async def execute(self, template: str, variables: dict[str, Any]) -> str:
        """Render `template` with `variables` and return the model's text."""
        ...
