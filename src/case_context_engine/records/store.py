"""
Record store implementations.

The case-management records (cases, providers, reviews, ...) live in an
external document store. The engine only needs four operations on it:
read by id, query by field equality, patch top-level fields, and upsert.

Pattern: Protocol → Production impl → Test double → Factory
- PostgresRecordStore: one JSONB table keyed by (container, id)
- InMemoryRecordStore: dict of dicts, for tests and local runs

Filters use dotted paths, so {"assignedWorker.id": "p-1"} matches
records whose nested assignedWorker object has id "p-1".
"""

from __future__ import annotations

import copy
import logging
from typing import Any

try:
    import psycopg
    from psycopg.types.json import Jsonb

    PSYCOPG_AVAILABLE = True
except ImportError:
    PSYCOPG_AVAILABLE = False

logger = logging.getLogger(__name__)

CASES = "cases"
PROVIDERS = "providers"


def get_path(record: dict[str, Any], path: str) -> Any:
    """Resolve a dotted path inside a nested record. Missing keys give None."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


# ---------------------------------------------------------------------------
# IN-MEMORY STORE (Testing/Development)
# ---------------------------------------------------------------------------


class InMemoryRecordStore:
    """
    In-memory record store.

    Records are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(self, records: dict[str, list[dict[str, Any]]] | None = None):
        self._containers: dict[str, dict[str, dict[str, Any]]] = {}
        for container, items in (records or {}).items():
            for item in items:
                self._containers.setdefault(container, {})[item["id"]] = copy.deepcopy(item)

    async def read(self, container: str, record_id: str) -> dict[str, Any] | None:
        record = self._containers.get(container, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def query(self, container: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(record)
            for record in self._containers.get(container, {}).values()
            if all(get_path(record, path) == value for path, value in filters.items())
        ]

    async def patch(self, container: str, record_id: str, fields: dict[str, Any]) -> None:
        record = self._containers.get(container, {}).get(record_id)
        if record is None:
            raise KeyError(f"{container}/{record_id} does not exist")
        record.update(copy.deepcopy(fields))

    async def upsert(self, container: str, record: dict[str, Any]) -> dict[str, Any]:
        self._containers.setdefault(container, {})[record["id"]] = copy.deepcopy(record)
        return copy.deepcopy(record)

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# POSTGRES STORE (Production)
# ---------------------------------------------------------------------------


def _filter_clause(filters: dict[str, Any]) -> tuple[str, list[Any]]:
    """Build `body #>> '{a,b}' = %s` predicates for dotted-path filters."""
    clauses = []
    params: list[Any] = []
    for path, value in filters.items():
        clauses.append("body #>> %s = %s")
        params.append(path.split("."))
        params.append(str(value).lower() if isinstance(value, bool) else str(value))
    return (" AND " + " AND ".join(clauses)) if clauses else "", params


class PostgresRecordStore:
    """
    Records stored as JSONB documents in a single table.

    Patches use the jsonb `||` operator, which replaces top-level keys only,
    matching the document store's patch-update semantics.
    """

    def __init__(self, connection_string: str, table: str = "records"):
        self.connection_string = connection_string
        self.table = table
        self._conn = None

    async def connect(self) -> None:
        """Establish database connection."""
        if not PSYCOPG_AVAILABLE:
            raise ImportError("psycopg not available. Install with: pip install psycopg[binary]")
        self._conn = await psycopg.AsyncConnection.connect(
            self.connection_string, autocommit=True
        )

    async def _connection(self):
        if self._conn is None:
            await self.connect()
        return self._conn

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def create_schema(self) -> None:
        conn = await self._connection()
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                container TEXT NOT NULL,
                id TEXT NOT NULL,
                body JSONB NOT NULL,
                PRIMARY KEY (container, id)
            )
            """
        )

    async def read(self, container: str, record_id: str) -> dict[str, Any] | None:
        conn = await self._connection()
        cursor = await conn.execute(
            f"SELECT body FROM {self.table} WHERE container = %s AND id = %s",
            (container, record_id),
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    async def query(self, container: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        where, params = _filter_clause(filters)
        conn = await self._connection()
        cursor = await conn.execute(
            f"SELECT body FROM {self.table} WHERE container = %s{where}",
            (container, *params),
        )
        return [row[0] for row in await cursor.fetchall()]

    async def patch(self, container: str, record_id: str, fields: dict[str, Any]) -> None:
        conn = await self._connection()
        cursor = await conn.execute(
            f"""
            UPDATE {self.table} SET body = body || %s
            WHERE container = %s AND id = %s
            """,
            (Jsonb(fields), container, record_id),
        )
        if cursor.rowcount == 0:
            raise KeyError(f"{container}/{record_id} does not exist")

    async def upsert(self, container: str, record: dict[str, Any]) -> dict[str, Any]:
        conn = await self._connection()
        await conn.execute(
            f"""
            INSERT INTO {self.table} (container, id, body) VALUES (%s, %s, %s)
            ON CONFLICT (container, id) DO UPDATE SET body = EXCLUDED.body
            """,
            (container, record["id"], Jsonb(record)),
        )
        return record


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def get_record_store(
    use_postgres: bool = False,
    connection_string: str | None = None,
) -> InMemoryRecordStore | PostgresRecordStore:
    """Return the Postgres store when requested, else an empty in-memory one."""
    if use_postgres:
        return PostgresRecordStore(connection_string or "postgresql://localhost/case_context")
    logger.debug("Using in-memory record store")
    return InMemoryRecordStore()
