"""
Records module - the external case-management document store.

Only `summary` and `metadata` on case records are written by the engine.
"""

from case_context_engine.records.store import (
    CASES,
    PROVIDERS,
    InMemoryRecordStore,
    PostgresRecordStore,
    get_path,
    get_record_store,
)

__all__ = [
    "CASES",
    "PROVIDERS",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "get_path",
    "get_record_store",
]
