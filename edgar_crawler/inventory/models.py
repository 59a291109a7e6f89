"""Datamodels for the filing inventory."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

ALL_ENTITIES_LABEL = "All Companies"


def document_id(url: str) -> str:
    """Return the stable identifier for a document: the SHA-256 hex digest of its URL."""
    if not url:
        raise ValueError("Cannot derive a document id from an empty URL")
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class ProcessingState(str, Enum):
    """Processing state derived from a record's persisted flags."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(slots=True)
class FilingRecord:
    """One discovered document and its processing outcome."""

    id: str
    entity_name: str
    form: str
    filing_date: date
    url: str
    processed: bool = False
    processed_date: datetime | None = None
    success: bool | None = None
    error_message: str | None = None
    scope: str | None = None

    @classmethod
    def new(
        cls,
        entity_name: str,
        form: str,
        filing_date: date,
        url: str,
        scope: str | None = None,
    ) -> FilingRecord:
        return cls(
            id=document_id(url),
            entity_name=entity_name,
            form=form,
            filing_date=_as_date(filing_date),
            url=url,
            scope=scope,
        )

    @property
    def state(self) -> ProcessingState:
        if not self.processed:
            return ProcessingState.PENDING
        if self.success:
            return ProcessingState.SUCCESS
        return ProcessingState.FAILURE

    def reset(self) -> None:
        """Return the record to pending for a recrawl, keeping its id."""
        self.processed = False
        self.processed_date = None
        self.success = None
        self.error_message = None

    def finalize(self, success: bool, error_message: str | None = None) -> None:
        self.processed = True
        self.processed_date = datetime.now(UTC)
        self.success = success
        self.error_message = None if success else error_message

    def copy(self) -> FilingRecord:
        return replace(self)

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serializable payload using the persisted field names."""
        return {
            "id": self.id,
            "entityName": self.entity_name,
            "form": self.form,
            "filingDate": self.filing_date.isoformat(),
            "url": self.url,
            "processed": self.processed,
            "processedDate": self.processed_date.isoformat() if self.processed_date else None,
            "success": self.success,
            "errorMessage": self.error_message,
            "scope": self.scope,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> FilingRecord:
        url = payload["url"]
        processed_raw = payload.get("processedDate")
        return cls(
            id=payload.get("id") or document_id(url),
            entity_name=payload.get("entityName", ""),
            form=payload.get("form", ""),
            filing_date=date.fromisoformat(payload["filingDate"][:10]),
            url=url,
            processed=bool(payload.get("processed", False)),
            processed_date=datetime.fromisoformat(processed_raw) if processed_raw else None,
            success=payload.get("success"),
            error_message=payload.get("errorMessage"),
            scope=payload.get("scope"),
        )


@dataclass(slots=True)
class CrawlMetrics:
    """Aggregate counters computed by scanning the inventory."""

    entity_name: str = ALL_ENTITIES_LABEL
    total_documents: int = 0
    processed_documents: int = 0
    successful_documents: int = 0
    failed_documents: int = 0
    last_processed_date: datetime | None = None
    form_type_counts: dict[str, int] = field(default_factory=dict)

    @property
    def pending_documents(self) -> int:
        return self.total_documents - self.processed_documents

    @property
    def success_rate(self) -> float:
        if self.total_documents == 0:
            return 0.0
        return self.successful_documents / self.total_documents * 100

    def to_payload(self) -> dict[str, Any]:
        return {
            "entity_name": self.entity_name,
            "total_documents": self.total_documents,
            "processed_documents": self.processed_documents,
            "successful_documents": self.successful_documents,
            "failed_documents": self.failed_documents,
            "pending_documents": self.pending_documents,
            "success_rate": self.success_rate,
            "last_processed_date": (
                self.last_processed_date.isoformat() if self.last_processed_date else None
            ),
            "form_type_counts": dict(self.form_type_counts),
        }


@dataclass(slots=True)
class YearlyMetrics:
    """Counters for the filings of one calendar year."""

    year: int
    total_documents: int = 0
    processed_documents: int = 0
    successful_documents: int = 0
    failed_documents: int = 0
    form_type_counts: dict[str, int] = field(default_factory=dict)
    entities: list[str] = field(default_factory=list)

    @property
    def pending_documents(self) -> int:
        return self.total_documents - self.processed_documents

    @property
    def success_rate(self) -> float:
        if self.total_documents == 0:
            return 0.0
        return self.successful_documents / self.total_documents * 100

    def to_payload(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "total_documents": self.total_documents,
            "processed_documents": self.processed_documents,
            "successful_documents": self.successful_documents,
            "failed_documents": self.failed_documents,
            "pending_documents": self.pending_documents,
            "success_rate": self.success_rate,
            "form_type_counts": dict(self.form_type_counts),
            "entities": list(self.entities),
        }


@dataclass(slots=True)
class ProcessingError:
    """A terminal failure recorded against a document."""

    entity_name: str
    form: str
    url: str
    error_message: str
    error_date: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "entity_name": self.entity_name,
            "form": self.form,
            "url": self.url,
            "error_message": self.error_message,
            "error_date": self.error_date.isoformat(),
        }


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
