"""Register an entity's recent filings into the inventory."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime

import httpx

from ..errors import BackendUnavailableError, MalformedMetadataError
from ..inventory.base import Inventory
from .feed import (
    DEFAULT_ARCHIVE_BASE_URL,
    SubmissionFeedClient,
    document_url,
    iter_feed_entries,
    recent_filings,
)
from .metrics import FEED_FETCH_LATENCY_SECONDS, FILINGS_DISCOVERED_TOTAL
from .models import CrawlContext, DiscoveryResult

LOGGER = logging.getLogger(__name__)


def retention_cutoff(today: date, years: int) -> date:
    """Return ``today`` moved back ``years`` calendar years (Feb 29 clamps to Feb 28)."""
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        return today.replace(year=today.year - years, day=28)


class FilingDiscoverer:
    """Lists an entity's recent filings and registers every in-window document.

    Form types are not filtered here so the inventory sees every filing; the
    processing allow-list is applied by the coordinator.
    """

    def __init__(
        self,
        feed_client: SubmissionFeedClient,
        inventory: Inventory,
        *,
        years_of_data: int,
        archive_base_url: str = DEFAULT_ARCHIVE_BASE_URL,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._feed_client = feed_client
        self._inventory = inventory
        self._years_of_data = years_of_data
        self._archive_base_url = archive_base_url
        self._today = today or (lambda: datetime.now(UTC).date())

    async def discover(self, context: CrawlContext) -> DiscoveryResult:
        result = DiscoveryResult()
        entity = context.entity
        start = datetime.now(UTC)
        try:
            payload = await self._feed_client.fetch_submissions(entity.padded_cik)
            recent = recent_filings(payload)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error(
                "Failed to load submission feed",
                extra={"entity": entity.name, "cik": entity.cik, "error": str(exc)},
            )
            return result
        except MalformedMetadataError as exc:
            LOGGER.error(
                "Submission feed is malformed",
                extra={"entity": entity.name, "cik": entity.cik, "error": str(exc)},
            )
            return result
        FEED_FETCH_LATENCY_SECONDS.observe((datetime.now(UTC) - start).total_seconds())

        cutoff = retention_cutoff(self._today(), self._years_of_data)
        cik = entity.padded_cik.lstrip("0") or "0"

        for item in iter_feed_entries(recent):
            result.seen += 1
            if isinstance(item, MalformedMetadataError):
                result.skipped_malformed += 1
                FILINGS_DISCOVERED_TOTAL.labels("malformed").inc()
                LOGGER.warning(
                    "Skipping malformed filing entry",
                    extra={"entity": entity.name, "error": str(item)},
                )
                continue

            if item.report_date < cutoff:
                result.skipped_stale += 1
                FILINGS_DISCOVERED_TOTAL.labels("stale").inc()
                continue

            url = document_url(self._archive_base_url, cik, item)
            try:
                await self._inventory.insert_if_absent(
                    entity.name, item.form, item.report_date, url, context.scope
                )
            except BackendUnavailableError as exc:
                result.register_errors += 1
                FILINGS_DISCOVERED_TOTAL.labels("error").inc()
                LOGGER.error(
                    "Error inserting entity",
                    extra={"entity": entity.name, "url": url, "error": str(exc)},
                )
                continue
            result.registered += 1
            FILINGS_DISCOVERED_TOTAL.labels("registered").inc()

        LOGGER.info(
            "Discovery completed",
            extra={
                "entity": entity.name,
                "seen": result.seen,
                "registered": result.registered,
                "skipped_malformed": result.skipped_malformed,
                "skipped_stale": result.skipped_stale,
            },
        )
        return result
