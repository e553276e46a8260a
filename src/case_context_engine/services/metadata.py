"""
Case Metadata Updater.

Recomputes a case's document counts from every collection and patches the
`metadata` field. Counts are always recomputed, never incremented, so
concurrent refreshes for one case converge on the true total.

Refresh is cache maintenance: every error is logged and swallowed so it
can never fail the ingestion that triggered it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from case_context_engine.records.store import CASES
from case_context_engine.retrieval.document import utc_now
from case_context_engine.schemas.context import CaseMetadata

if TYPE_CHECKING:
    from case_context_engine.core.protocols import RecordStore
    from case_context_engine.retrieval.store import VectorStore

logger = logging.getLogger(__name__)


class MetadataUpdater:
    def __init__(self, records: RecordStore, vector_store: VectorStore):
        self._records = records
        self._store = vector_store

    async def count_documents(self, case_id: str) -> int:
        counts = await asyncio.gather(
            *(collection.count(case_id=case_id) for collection in self._store.collections)
        )
        return sum(counts)

    async def refresh(self, case_id: str) -> CaseMetadata | None:
        """
        Recompute and store CaseMetadata for a case.

        Returns the written metadata, or None if the case is missing or
        anything failed.
        """
        try:
            case = await self._records.read(CASES, case_id)
            if case is None:
                logger.warning("Metadata refresh skipped: case %s not found", case_id)
                return None

            total = await self.count_documents(case_id)
            metadata = CaseMetadata(
                case_id=case_id,
                document_count=total,
                vector_count=total,
                last_updated=utc_now(),
            )
            await self._records.patch(CASES, case_id, {"metadata": metadata.to_wire()})
        except Exception:
            logger.warning("Metadata refresh failed for case %s", case_id, exc_info=True)
            return None

        logger.debug("Case %s metadata: %d document(s)", case_id, total)
        return metadata
