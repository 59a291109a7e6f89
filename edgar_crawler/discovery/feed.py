"""HTTP client and parsing logic for SEC EDGAR submission feeds."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from datetime import date
from typing import Any

import httpx

from ..errors import MalformedMetadataError
from .models import FilingFeedEntry

LOGGER = logging.getLogger(__name__)

DEFAULT_SUBMISSIONS_BASE_URL = "https://data.sec.gov/submissions"
DEFAULT_ARCHIVE_BASE_URL = "https://www.sec.gov/Archives/edgar/data"

_RECENT_FIELDS = ("accessionNumber", "form", "primaryDocument", "reportDate")


class SubmissionFeedClient:
    """Fetch an entity's submission feed and normalize its recent filings."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str = DEFAULT_SUBMISSIONS_BASE_URL,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    def submissions_url(self, padded_cik: str) -> str:
        return f"{self._base_url}/CIK{padded_cik}.json"

    async def fetch_submissions(self, padded_cik: str) -> dict[str, Any]:
        url = self.submissions_url(padded_cik)
        LOGGER.debug("Fetching submission feed", extra={"url": url})
        response = await self._http.get(url)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise MalformedMetadataError(f"Submission feed at {url} is not a JSON object")
        return payload


def recent_filings(payload: Mapping[str, Any]) -> Mapping[str, Sequence[Any]]:
    """Return the ``filings.recent`` parallel arrays, validating their presence."""
    try:
        recent = payload["filings"]["recent"]
    except (KeyError, TypeError) as exc:
        raise MalformedMetadataError("Submission feed lacks filings.recent") from exc
    missing = [name for name in _RECENT_FIELDS if not isinstance(recent.get(name), list)]
    if missing:
        raise MalformedMetadataError(
            "Submission feed missing arrays: " + ", ".join(missing)
        )
    return recent


def iter_feed_entries(
    recent: Mapping[str, Sequence[Any]],
) -> Iterator[FilingFeedEntry | MalformedMetadataError]:
    """Yield one entry per index, or the error explaining why that index was unusable."""
    accessions = recent["accessionNumber"]
    forms = recent["form"]
    documents = recent["primaryDocument"]
    report_dates = recent["reportDate"]
    length = min(len(accessions), len(forms), len(documents), len(report_dates))

    for index in range(length):
        try:
            yield _parse_entry(
                accessions[index], forms[index], documents[index], report_dates[index]
            )
        except MalformedMetadataError as exc:
            yield exc


def _parse_entry(accession: Any, form: Any, document: Any, raw_date: Any) -> FilingFeedEntry:
    date_text = str(raw_date or "").strip()
    if len(date_text) < 10:
        raise MalformedMetadataError(f"Report date {date_text!r} too short for {accession}")
    try:
        report_date = date.fromisoformat(date_text[:10])
    except ValueError as exc:
        raise MalformedMetadataError(f"Unparsable report date {date_text!r}") from exc

    accession_number = str(accession or "").strip()
    primary_document = str(document or "").strip()
    if not accession_number or not primary_document:
        raise MalformedMetadataError(f"Missing accession or document at {date_text}")

    return FilingFeedEntry(
        accession_number=accession_number,
        form=str(form or "").strip(),
        primary_document=primary_document,
        report_date=report_date,
    )


def document_url(archive_base: str, cik: str, entry: FilingFeedEntry) -> str:
    """Canonical archive URL: ``{base}/{cik}/{accession without dashes}/{primary document}``."""
    return f"{archive_base.rstrip('/')}/{cik}/{entry.accession_path}/{entry.primary_document}"
