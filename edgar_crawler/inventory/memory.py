"""In-process inventory backend."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from .base import build_metrics, build_yearly_metrics, collect_errors, filter_records
from .metrics import RECORDS_FINALIZED_TOTAL, RECORDS_REGISTERED_TOTAL
from .models import CrawlMetrics, FilingRecord, ProcessingError, YearlyMetrics

LOGGER = logging.getLogger(__name__)

_BACKEND = "memory"

_Key = tuple[str | None, str]


class InMemoryInventory:
    """Inventory kept in a dict keyed by ``(scope, url)``.

    Each mutation builds a fresh snapshot and swaps it in under a single lock, so
    readers never observe a half-applied change.
    """

    def __init__(self) -> None:
        self._records: dict[_Key, FilingRecord] = {}
        self._lock = asyncio.Lock()

    @property
    def storage_type(self) -> str:
        return "In-Memory Storage"

    async def initialize(self) -> None:
        LOGGER.info("In-memory inventory initialized")

    async def insert_if_absent(
        self,
        entity_name: str,
        form: str,
        filing_date: date,
        url: str,
        scope: str | None = None,
    ) -> FilingRecord:
        async with self._lock:
            snapshot = {key: record.copy() for key, record in self._records.items()}
            existing = snapshot.get((scope, url))
            if existing is not None:
                existing.reset()
                record = existing
                outcome = "reset"
            else:
                record = FilingRecord.new(entity_name, form, filing_date, url, scope)
                snapshot[(scope, url)] = record
                outcome = "inserted"
            self._records = snapshot
        RECORDS_REGISTERED_TOTAL.labels(_BACKEND, outcome).inc()
        LOGGER.debug(
            "Registered document",
            extra={"url": url, "scope": scope, "outcome": outcome},
        )
        return record.copy()

    async def mark_processed(
        self,
        url: str,
        success: bool,
        error_message: str | None = None,
        scope: str | None = None,
    ) -> bool:
        async with self._lock:
            if (scope, url) not in self._records:
                LOGGER.warning(
                    "Document not found for processing", extra={"url": url, "scope": scope}
                )
                return False
            snapshot = {key: record.copy() for key, record in self._records.items()}
            snapshot[(scope, url)].finalize(success, error_message)
            self._records = snapshot
        RECORDS_FINALIZED_TOTAL.labels(_BACKEND, "success" if success else "failure").inc()
        return True

    async def get_unprocessed(
        self, scope: str | None = None, entity_name: str | None = None
    ) -> list[FilingRecord]:
        records = await self._select(entity_name, scope)
        return [record for record in records if not record.processed]

    async def get_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> CrawlMetrics:
        return build_metrics(await self._select(entity_filter, scope), entity_filter)

    async def get_processing_errors(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> list[ProcessingError]:
        return collect_errors(await self._select(entity_filter, scope))

    async def get_yearly_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> dict[int, YearlyMetrics]:
        return build_yearly_metrics(await self._select(entity_filter, scope))

    async def delete_scope(self, scope: str) -> int:
        async with self._lock:
            kept = {key: record for key, record in self._records.items() if key[0] != scope}
            removed = len(self._records) - len(kept)
            self._records = kept
        LOGGER.info("Deleted inventory scope", extra={"scope": scope, "removed": removed})
        return removed

    async def is_healthy(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    async def _select(self, entity_filter: str | None, scope: str | None) -> list[FilingRecord]:
        async with self._lock:
            records = [record.copy() for record in self._records.values()]
        return filter_records(records, entity_filter=entity_filter, scope=scope)
