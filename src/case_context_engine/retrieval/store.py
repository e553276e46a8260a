"""
Vector store implementations.

Pattern: Protocol → Production impl → Test double → Factory

This module contains:
1. VectorStoreConfig - Configuration dataclass
2. PgVectorCollection - one pgvector table per document type (production)
3. InMemoryCollection - numpy cosine distance (testing/development)
4. VectorStore - the set of per-type collections, one per EntityType
5. get_vector_store() - Factory function

All collections report cosine *distance* (lower = more similar), so
results from different collections can be merged and sorted directly.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from case_context_engine.core.errors import UnsupportedTypeError
from case_context_engine.retrieval.document import (
    DocumentMetadata,
    EntityType,
    VectorizedDocument,
)

if TYPE_CHECKING:
    from case_context_engine.core.protocols import VectorCollection

try:
    import psycopg
    from pgvector.psycopg import register_vector_async
    from psycopg.types.json import Jsonb

    PGVECTOR_AVAILABLE = True
except ImportError:
    PGVECTOR_AVAILABLE = False

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CONFIGURATION
# ---------------------------------------------------------------------------


@dataclass
class VectorStoreConfig:
    """Configuration for the vector store."""

    connection_string: str = "postgresql://localhost/case_context"
    embedding_dim: int = 1536
    table_prefix: str = "vectors"

    def table_for(self, entity_type: EntityType) -> str:
        return f"{self.table_prefix}_{entity_type.value}"


def cosine_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine distance in [0, 2]. Zero vectors are maximally unrelated (1.0)."""
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 1.0
    return 1.0 - float(np.dot(a, b)) / denom


# ---------------------------------------------------------------------------
# PGVECTOR COLLECTION (Production)
# ---------------------------------------------------------------------------


class PgVectorCollection:
    """
    One document type stored in its own pgvector table.

    Metadata lives in a JSONB column so type/caseId/providerId filters are
    plain `metadata->>'key' = %s` predicates next to the `<=>` ordering.
    """

    def __init__(self, store: "PgVectorStore", entity_type: EntityType):
        self.entity_type = entity_type
        self._store = store
        self._table = store.config.table_for(entity_type)

    def _filters(self, case_id: str | None, provider_id: str | None) -> tuple[str, list[Any]]:
        clauses = ["metadata->>'type' = %s"]
        params: list[Any] = [self.entity_type.value]
        if case_id:
            clauses.append("metadata->>'caseId' = %s")
            params.append(case_id)
        if provider_id:
            clauses.append("metadata->>'providerId' = %s")
            params.append(provider_id)
        return " AND ".join(clauses), params

    async def create_schema(self) -> None:
        conn = await self._store.connection()
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                embedding vector({self._store.config.embedding_dim}),
                metadata JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        # HNSW index for fast cosine similarity search
        await conn.execute(
            f"""
            CREATE INDEX IF NOT EXISTS {self._table}_embedding_idx
            ON {self._table}
            USING hnsw (embedding vector_cosine_ops)
            WITH (m = 16, ef_construction = 64)
            """
        )
        await conn.execute(
            f"""
            CREATE INDEX IF NOT EXISTS {self._table}_case_idx
            ON {self._table} ((metadata->>'caseId'))
            """
        )

    async def create(self, doc: VectorizedDocument) -> None:
        """Insert a document. Append-only: an id collision is an error."""
        conn = await self._store.connection()
        await conn.execute(
            f"""
            INSERT INTO {self._table} (id, content, embedding, metadata)
            VALUES (%s, %s, %s, %s)
            """,
            (doc.id, doc.content, doc.embedding, Jsonb(doc.metadata.to_dict())),
        )

    async def query(
        self,
        embedding: np.ndarray,
        limit: int,
        case_id: str | None = None,
        provider_id: str | None = None,
    ) -> list[VectorizedDocument]:
        where, params = self._filters(case_id, provider_id)
        conn = await self._store.connection()
        cursor = await conn.execute(
            f"""
            SELECT id, content, metadata, embedding,
                   embedding <=> %s AS distance
            FROM {self._table}
            WHERE {where}
            ORDER BY distance
            LIMIT %s
            """,
            (embedding, *params, limit),
        )
        rows = await cursor.fetchall()
        return [
            VectorizedDocument(
                id=row[0],
                content=row[1],
                metadata=DocumentMetadata.from_dict(row[2]),
                embedding=np.asarray(row[3], dtype=np.float32) if row[3] is not None else None,
                distance=float(row[4]),
            )
            for row in rows
        ]

    async def count(self, case_id: str | None = None, provider_id: str | None = None) -> int:
        where, params = self._filters(case_id, provider_id)
        conn = await self._store.connection()
        cursor = await conn.execute(
            f"SELECT count(*) FROM {self._table} WHERE {where}",
            params,
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0


class PgVectorStore:
    """
    Owns the Postgres connection shared by the per-type collections.

    The async connection serialises statements internally, so concurrent
    collection queries are safe on one connection.
    """

    def __init__(self, config: VectorStoreConfig):
        self.config = config
        self._conn = None
        self.collections: dict[EntityType, PgVectorCollection] = {
            entity_type: PgVectorCollection(self, entity_type) for entity_type in EntityType
        }

    async def connect(self) -> None:
        """Establish database connection."""
        if not PGVECTOR_AVAILABLE:
            raise ImportError(
                "pgvector not available. Install with: pip install pgvector psycopg[binary]"
            )
        self._conn = await psycopg.AsyncConnection.connect(
            self.config.connection_string, autocommit=True
        )
        await self._conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
        await register_vector_async(self._conn)

    async def connection(self):
        if self._conn is None:
            await self.connect()
        return self._conn

    async def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def create_schema(self) -> None:
        """Create one table (plus indexes) per document type."""
        for collection in self.collections.values():
            await collection.create_schema()


# ---------------------------------------------------------------------------
# IN-MEMORY COLLECTION (Testing/Development)
# ---------------------------------------------------------------------------


class InMemoryCollection:
    """
    In-memory collection for development/testing.

    Implements the same interface as PgVectorCollection but doesn't require
    Postgres. Uses numpy cosine distance.
    """

    def __init__(self, entity_type: EntityType):
        self.entity_type = entity_type
        self._documents: dict[str, VectorizedDocument] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def _matches(self, doc: VectorizedDocument, case_id: str | None, provider_id: str | None) -> bool:
        meta = doc.metadata
        if meta.type != self.entity_type:
            return False
        if case_id and meta.case_id != case_id:
            return False
        if provider_id and meta.provider_id != provider_id:
            return False
        return True

    async def create(self, doc: VectorizedDocument) -> None:
        if doc.id in self._documents:
            raise ValueError(f"Document '{doc.id}' already exists")
        self._documents[doc.id] = doc

    async def query(
        self,
        embedding: np.ndarray,
        limit: int,
        case_id: str | None = None,
        provider_id: str | None = None,
    ) -> list[VectorizedDocument]:
        """Search using cosine distance, nearest first."""
        scored = [
            dataclasses.replace(doc, distance=cosine_distance(embedding, doc.embedding))
            for doc in self._documents.values()
            if doc.embedding is not None and self._matches(doc, case_id, provider_id)
        ]
        scored.sort(key=lambda d: d.distance)
        return scored[:limit]

    async def count(self, case_id: str | None = None, provider_id: str | None = None) -> int:
        return sum(
            1 for doc in self._documents.values() if self._matches(doc, case_id, provider_id)
        )


# ---------------------------------------------------------------------------
# VECTOR STORE (one collection per type)
# ---------------------------------------------------------------------------


class VectorStore:
    """
    The set of type-specific collections.

    Every EntityType maps to exactly one collection; anything else is an
    UnsupportedTypeError.
    """

    def __init__(
        self,
        collections: dict[EntityType, VectorCollection],
        backend: PgVectorStore | None = None,
    ):
        self._collections = dict(collections)
        self._backend = backend

    @property
    def collections(self) -> list[VectorCollection]:
        return list(self._collections.values())

    def collection_for(self, entity_type: str | EntityType) -> VectorCollection:
        parsed = EntityType.parse(entity_type)
        if parsed is None or parsed not in self._collections:
            raise UnsupportedTypeError(str(getattr(entity_type, "value", entity_type)))
        return self._collections[parsed]

    async def connect(self) -> None:
        if self._backend is not None:
            await self._backend.connect()

    async def create_schema(self) -> None:
        if self._backend is not None:
            await self._backend.create_schema()

    async def close(self) -> None:
        if self._backend is not None:
            await self._backend.close()


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def get_vector_store(
    use_postgres: bool = False,
    config: VectorStoreConfig | None = None,
) -> VectorStore:
    """
    Factory function to get the appropriate vector store.

    Args:
        use_postgres: Use PostgreSQL collections (default: False for dev)
        config: Store configuration (uses defaults if not provided)

    Returns:
        VectorStore with one collection per EntityType
    """
    if use_postgres:
        backend = PgVectorStore(config or VectorStoreConfig())
        return VectorStore(backend.collections, backend=backend)

    logger.debug("Using in-memory vector collections")
    return VectorStore({entity_type: InMemoryCollection(entity_type) for entity_type in EntityType})
