"""
Retrieval module - vectorized documents and the per-type collections.

USAGE:
------
from case_context_engine.retrieval import get_vector_store, EntityType

store = get_vector_store()
collection = store.collection_for(EntityType.REVIEW)
"""

from case_context_engine.retrieval.document import (
    DocumentMetadata,
    EntityType,
    VectorizedDocument,
    utc_now,
)
from case_context_engine.retrieval.store import (
    InMemoryCollection,
    PgVectorCollection,
    PgVectorStore,
    VectorStore,
    VectorStoreConfig,
    cosine_distance,
    get_vector_store,
)

__all__ = [
    "DocumentMetadata",
    "EntityType",
    "VectorizedDocument",
    "utc_now",
    "InMemoryCollection",
    "PgVectorCollection",
    "PgVectorStore",
    "VectorStore",
    "VectorStoreConfig",
    "cosine_distance",
    "get_vector_store",
]
