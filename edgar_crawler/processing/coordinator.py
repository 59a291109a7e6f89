"""Drains pending inventory records through fetch, extraction and the sink."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from ..discovery.models import CrawlContext
from ..errors import BackendUnavailableError, CrawlCancelledError
from ..inventory.base import Inventory
from ..inventory.models import FilingRecord
from .archive import FilingArchive
from .extractor import ContentExtractor
from .fetcher import FETCH_FAILED, Fetcher, is_pdf_url
from .metrics import DOCUMENTS_PROCESSED_TOTAL, PROCESSING_LATENCY_SECONDS
from .sink import DocumentSink, IndexDocument

LOGGER = logging.getLogger(__name__)

FETCH_FAILED_MESSAGE = "fetch failed"
SINK_REJECTED_MESSAGE = "sink rejected document"


@dataclass(slots=True)
class ProcessingSummary:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    def to_payload(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }


def form_allowed(form: str, included_form_types: Sequence[str]) -> bool:
    """Case-insensitive containment, so amendments such as ``10-K/A`` pass ``10-K``."""
    candidate = form.upper()
    return any(allowed.upper() in candidate for allowed in included_form_types if allowed)


def document_title(record: FilingRecord) -> str:
    return f"{record.entity_name} {record.form} {record.filing_date.isoformat()}"


@dataclass(slots=True)
class _Payload:
    text: str
    raw: bytes
    content_type: str


class ProcessingCoordinator:
    """Processes an entity's pending records one at a time.

    A failure in one document is recorded on that document and never stops the
    batch. Cancellation propagates and leaves the current record pending.
    """

    def __init__(
        self,
        inventory: Inventory,
        fetcher: Fetcher,
        extractor: ContentExtractor,
        sink: DocumentSink,
        *,
        included_form_types: Sequence[str],
        archive: FilingArchive | None = None,
    ) -> None:
        self._inventory = inventory
        self._fetcher = fetcher
        self._extractor = extractor
        self._sink = sink
        self._included_form_types = list(included_form_types)
        self._archive = archive

    async def process_entity(self, context: CrawlContext) -> ProcessingSummary:
        summary = ProcessingSummary()
        fetcher = self._fetcher
        if context.stop_event is not None:
            fetcher = fetcher.with_stop_event(context.stop_event)

        pending = await self._inventory.get_unprocessed(
            scope=context.scope, entity_name=context.entity_name
        )
        # an unscoped crawl reads every partition; keep only its own
        pending = [record for record in pending if record.scope == context.scope]
        LOGGER.info(
            "Processing pending documents",
            extra={"entity": context.entity_name, "pending": len(pending)},
        )

        for record in pending:
            if context.stopped:
                raise CrawlCancelledError(f"Stop requested while processing {context.entity_name}")
            if not form_allowed(record.form, self._included_form_types):
                summary.skipped += 1
                DOCUMENTS_PROCESSED_TOTAL.labels("skipped").inc()
                continue

            start = datetime.now(UTC)
            success, error_message = await self._process_record(fetcher, record)
            PROCESSING_LATENCY_SECONDS.observe((datetime.now(UTC) - start).total_seconds())

            summary.processed += 1
            if success:
                summary.succeeded += 1
                context.entities_with_new_content.add(record.entity_name)
            else:
                summary.failed += 1
            DOCUMENTS_PROCESSED_TOTAL.labels("success" if success else "failure").inc()
            await self._mark(record, success, error_message)

        LOGGER.info(
            "Finished processing entity",
            extra={"entity": context.entity_name, **summary.to_payload()},
        )
        return summary

    async def _process_record(
        self, fetcher: Fetcher, record: FilingRecord
    ) -> tuple[bool, str | None]:
        try:
            payload = await self._load(fetcher, record)
        except CrawlCancelledError:
            raise
        except Exception as exc:
            LOGGER.error(
                "Failed to extract document",
                extra={"url": record.url, "error": str(exc)},
            )
            return False, str(exc) or exc.__class__.__name__
        if payload is None:
            return False, FETCH_FAILED_MESSAGE

        document = IndexDocument(
            id=record.id,
            title=document_title(record),
            entity_name=record.entity_name,
            url=record.url,
            date=record.filing_date.isoformat(),
            form=record.form,
            content=payload.text,
        )
        try:
            accepted = await self._sink.push(document)
        except Exception as exc:
            LOGGER.exception("Index sink raised", extra={"url": record.url})
            return False, str(exc) or exc.__class__.__name__
        if not accepted:
            return False, SINK_REJECTED_MESSAGE

        await self._archive_artifacts(record, payload)
        return True, None

    async def _load(self, fetcher: Fetcher, record: FilingRecord) -> _Payload | None:
        """Fetch and extract; returns ``None`` when the fetch gave up."""
        if is_pdf_url(record.url):
            data = await fetcher.fetch_bytes(record.url)
            if data is FETCH_FAILED:
                return None
            text = await self._extractor.extract_pdf(data)
            return _Payload(text=text, raw=data, content_type="application/pdf")

        html = await fetcher.fetch_text(record.url)
        if html is FETCH_FAILED:
            return None
        text = await self._extractor.extract_html(html)
        return _Payload(text=text, raw=html.encode("utf-8"), content_type="text/html")

    async def _mark(self, record: FilingRecord, success: bool, error_message: str | None) -> None:
        try:
            found = await self._inventory.mark_processed(
                record.url, success, error_message, scope=record.scope
            )
        except BackendUnavailableError as exc:
            LOGGER.error(
                "Failed to record processing outcome",
                extra={"url": record.url, "error": str(exc)},
            )
            return
        if not found:
            LOGGER.warning("Processed document vanished from inventory", extra={"url": record.url})

    async def _archive_artifacts(self, record: FilingRecord, payload: _Payload) -> None:
        if self._archive is None:
            return
        try:
            await self._archive.archive(record, payload.raw, payload.content_type, payload.text)
        except Exception as exc:
            LOGGER.warning(
                "Failed to archive document",
                extra={"url": record.url, "error": str(exc)},
            )
