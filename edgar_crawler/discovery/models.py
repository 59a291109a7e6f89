"""Datamodels used by entity resolution and filing discovery."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass(slots=True, frozen=True)
class TrackedEntity:
    """A reporting entity resolved to its registry id (CIK)."""

    cik: str
    name: str
    ticker: str

    @property
    def padded_cik(self) -> str:
        digits = self.cik.strip().lstrip("0") or "0"
        return digits.zfill(10)

    def to_payload(self) -> dict[str, str]:
        return {"cik": self.cik, "name": self.name, "ticker": self.ticker}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TrackedEntity:
        return cls(
            cik=str(payload["cik"]),
            name=str(payload.get("name", "")),
            ticker=str(payload.get("ticker", "")),
        )


@dataclass(slots=True)
class FilingFeedEntry:
    """One row of the submission feed's recent-filings arrays, normalized."""

    accession_number: str
    form: str
    primary_document: str
    report_date: date

    @property
    def accession_path(self) -> str:
        return self.accession_number.replace("-", "")


@dataclass(slots=True)
class CrawlContext:
    """Explicit per-entity crawl state handed to the discoverer and coordinator."""

    entity: TrackedEntity
    scope: str | None = None
    stop_event: asyncio.Event | None = None
    entities_with_new_content: set[str] = field(default_factory=set)

    @property
    def entity_name(self) -> str:
        return self.entity.name

    @property
    def stopped(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()


@dataclass(slots=True)
class DiscoveryResult:
    """Counters from one pass over an entity's submission feed."""

    seen: int = 0
    registered: int = 0
    skipped_malformed: int = 0
    skipped_stale: int = 0
    register_errors: int = 0
