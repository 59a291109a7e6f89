"""Inventory backend persisted as a JSON snapshot on the local filesystem."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any

from ..errors import BackendUnavailableError
from .base import build_metrics, build_yearly_metrics, collect_errors, filter_records
from .metrics import INVENTORY_ERRORS_TOTAL, RECORDS_FINALIZED_TOTAL, RECORDS_REGISTERED_TOTAL
from .models import CrawlMetrics, FilingRecord, ProcessingError, YearlyMetrics

LOGGER = logging.getLogger(__name__)

_BACKEND = "local"
DOCUMENTS_FILENAME = "tracked-documents.json"
_HEALTH_FILENAME = "health_check.txt"


class LocalFileInventory:
    """Loads and rewrites the whole record set on every mutation.

    All access goes through one lock per instance; two instances pointed at the
    same directory are not coordinated.
    """

    def __init__(self, data_path: Path | str) -> None:
        self._data_path = Path(data_path)
        self._documents_file = self._data_path / DOCUMENTS_FILENAME
        self._lock = asyncio.Lock()

    @property
    def storage_type(self) -> str:
        return "Local File Storage"

    @property
    def documents_file(self) -> Path:
        return self._documents_file

    async def initialize(self) -> None:
        def prepare() -> None:
            self._data_path.mkdir(parents=True, exist_ok=True)
            if not self._documents_file.exists():
                self._documents_file.write_text("[]", encoding="utf-8")

        async with self._lock:
            await asyncio.to_thread(prepare)
        LOGGER.info(
            "Local file inventory initialized",
            extra={"documents_file": str(self._documents_file)},
        )

    async def insert_if_absent(
        self,
        entity_name: str,
        form: str,
        filing_date: date,
        url: str,
        scope: str | None = None,
    ) -> FilingRecord:
        async with self._lock:
            records = await self._load("insert")
            existing = _find(records, url, scope)
            if existing is not None:
                existing.reset()
                record = existing
                outcome = "reset"
            else:
                record = FilingRecord.new(entity_name, form, filing_date, url, scope)
                records.append(record)
                outcome = "inserted"
            await self._save(records, "insert")
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
            records = await self._load("mark_processed")
            record = _find(records, url, scope)
            if record is None:
                LOGGER.warning(
                    "Document not found for processing", extra={"url": url, "scope": scope}
                )
                return False
            record.finalize(success, error_message)
            await self._save(records, "mark_processed")
        RECORDS_FINALIZED_TOTAL.labels(_BACKEND, "success" if success else "failure").inc()
        return True

    async def get_unprocessed(
        self, scope: str | None = None, entity_name: str | None = None
    ) -> list[FilingRecord]:
        records = await self._select(entity_name, scope, "get_unprocessed")
        return [record for record in records if not record.processed]

    async def get_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> CrawlMetrics:
        records = await self._select(entity_filter, scope, "get_metrics")
        return build_metrics(records, entity_filter)

    async def get_processing_errors(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> list[ProcessingError]:
        return collect_errors(await self._select(entity_filter, scope, "get_processing_errors"))

    async def get_yearly_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> dict[int, YearlyMetrics]:
        return build_yearly_metrics(await self._select(entity_filter, scope, "get_yearly_metrics"))

    async def delete_scope(self, scope: str) -> int:
        async with self._lock:
            records = await self._load("delete_scope")
            kept = [record for record in records if record.scope != scope]
            await self._save(kept, "delete_scope")
        removed = len(records) - len(kept)
        LOGGER.info("Deleted inventory scope", extra={"scope": scope, "removed": removed})
        return removed

    async def is_healthy(self) -> bool:
        marker = self._data_path / _HEALTH_FILENAME

        def round_trip() -> bool:
            if not self._data_path.is_dir() or not self._documents_file.exists():
                return False
            marker.write_text("health_check", encoding="utf-8")
            try:
                return marker.read_text(encoding="utf-8") == "health_check"
            finally:
                marker.unlink(missing_ok=True)

        try:
            return await asyncio.to_thread(round_trip)
        except OSError:
            LOGGER.warning("Local inventory health check failed", exc_info=True)
            return False

    async def close(self) -> None:
        return None

    async def _select(
        self, entity_filter: str | None, scope: str | None, operation: str
    ) -> list[FilingRecord]:
        async with self._lock:
            records = await self._load(operation)
        return filter_records(records, entity_filter=entity_filter, scope=scope)

    async def _load(self, operation: str) -> list[FilingRecord]:
        def read() -> list[dict[str, Any]]:
            if not self._documents_file.exists():
                return []
            raw = self._documents_file.read_text(encoding="utf-8")
            return json.loads(raw) if raw.strip() else []

        try:
            payloads = await asyncio.to_thread(read)
            return [FilingRecord.from_payload(payload) for payload in payloads]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            INVENTORY_ERRORS_TOTAL.labels(_BACKEND, operation).inc()
            raise BackendUnavailableError(
                f"Failed to load {self._documents_file}: {exc}"
            ) from exc

    async def _save(self, records: list[FilingRecord], operation: str) -> None:
        payload = json.dumps([record.to_payload() for record in records], indent=2)
        tmp_path = self._documents_file.with_suffix(".json.tmp")

        def write() -> None:
            self._data_path.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._documents_file)

        try:
            await asyncio.to_thread(write)
        except OSError as exc:
            INVENTORY_ERRORS_TOTAL.labels(_BACKEND, operation).inc()
            raise BackendUnavailableError(
                f"Failed to save {self._documents_file}: {exc}"
            ) from exc


def _find(records: list[FilingRecord], url: str, scope: str | None) -> FilingRecord | None:
    for record in records:
        if record.url == url and record.scope == scope:
            return record
    return None
