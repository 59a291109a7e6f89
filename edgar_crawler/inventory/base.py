"""Storage contract shared by every inventory backend, plus scan helpers."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Protocol

from .models import (
    ALL_ENTITIES_LABEL,
    CrawlMetrics,
    FilingRecord,
    ProcessingError,
    YearlyMetrics,
)


class Inventory(Protocol):
    """Durable record of every discovered filing and its processing state.

    Mutating calls with ``scope=None`` address the unscoped partition; query calls
    with ``scope=None`` span every partition.
    """

    @property
    def storage_type(self) -> str:
        """Human readable backend label."""

    async def initialize(self) -> None:
        """Prepare backend resources."""

    async def insert_if_absent(
        self,
        entity_name: str,
        form: str,
        filing_date: date,
        url: str,
        scope: str | None = None,
    ) -> FilingRecord:
        """Insert a pending record, or reset the existing ``(url, scope)`` record to pending."""

    async def mark_processed(
        self,
        url: str,
        success: bool,
        error_message: str | None = None,
        scope: str | None = None,
    ) -> bool:
        """Move the matching record to a terminal state. Returns False if unknown."""

    async def get_unprocessed(
        self, scope: str | None = None, entity_name: str | None = None
    ) -> list[FilingRecord]:
        """Return pending records."""

    async def get_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> CrawlMetrics:
        """Aggregate counters over the matching records."""

    async def get_processing_errors(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> list[ProcessingError]:
        """Return terminal failures carrying an error message."""

    async def get_yearly_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> dict[int, YearlyMetrics]:
        """Aggregate counters grouped by filing year."""

    async def delete_scope(self, scope: str) -> int:
        """Remove every record in ``scope``; returns the number removed."""

    async def is_healthy(self) -> bool:
        """Backend liveness check."""

    async def close(self) -> None:
        """Release backend resources."""


def filter_records(
    records: Iterable[FilingRecord],
    *,
    entity_filter: str | None = None,
    scope: str | None = None,
) -> list[FilingRecord]:
    wanted_entity = entity_filter.casefold() if entity_filter else None
    selected: list[FilingRecord] = []
    for record in records:
        if scope is not None and record.scope != scope:
            continue
        if wanted_entity is not None and record.entity_name.casefold() != wanted_entity:
            continue
        selected.append(record)
    return selected


def build_metrics(records: Iterable[FilingRecord], entity_filter: str | None = None) -> CrawlMetrics:
    metrics = CrawlMetrics(entity_name=entity_filter or ALL_ENTITIES_LABEL)
    forms: Counter[str] = Counter()
    for record in records:
        metrics.total_documents += 1
        forms[record.form] += 1
        if record.processed:
            metrics.processed_documents += 1
            if record.success:
                metrics.successful_documents += 1
            else:
                metrics.failed_documents += 1
        if record.processed_date is not None and (
            metrics.last_processed_date is None
            or record.processed_date > metrics.last_processed_date
        ):
            metrics.last_processed_date = record.processed_date
    metrics.form_type_counts = dict(forms)
    return metrics


def build_yearly_metrics(records: Iterable[FilingRecord]) -> dict[int, YearlyMetrics]:
    yearly: dict[int, YearlyMetrics] = {}
    for record in records:
        year = record.filing_date.year
        metrics = yearly.setdefault(year, YearlyMetrics(year=year))
        metrics.total_documents += 1
        if record.processed:
            metrics.processed_documents += 1
            if record.success:
                metrics.successful_documents += 1
            else:
                metrics.failed_documents += 1
        metrics.form_type_counts[record.form] = metrics.form_type_counts.get(record.form, 0) + 1
        if record.entity_name not in metrics.entities:
            metrics.entities.append(record.entity_name)
    for metrics in yearly.values():
        metrics.entities.sort()
    return dict(sorted(yearly.items()))


def collect_errors(records: Iterable[FilingRecord]) -> list[ProcessingError]:
    errors: list[ProcessingError] = []
    for record in records:
        if not record.processed or record.success or not record.error_message:
            continue
        errors.append(
            ProcessingError(
                entity_name=record.entity_name,
                form=record.form,
                url=record.url,
                error_message=record.error_message,
                error_date=record.processed_date or datetime.now(UTC),
            )
        )
    return errors
