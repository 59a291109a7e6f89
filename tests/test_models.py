from __future__ import annotations

import hashlib
from datetime import date

import pytest
from edgar_crawler.inventory import FilingRecord, ProcessingState, document_id


def test_document_id_is_stable_sha256_hex() -> None:
    url = "https://www.sec.gov/Archives/edgar/data/320193/000032019324000123/aapl-20240928.htm"

    assert document_id(url) == hashlib.sha256(url.encode("utf-8")).hexdigest()
    assert document_id(url) == document_id(url)
    assert document_id(url) != document_id(url + "?v=2")
    assert len(document_id(url)) == 64
    assert document_id(url) == document_id(url).lower()


def test_document_id_rejects_empty_url() -> None:
    with pytest.raises(ValueError):
        document_id("")


def test_record_lifecycle() -> None:
    record = FilingRecord.new("Acme Corp", "10-K", date(2024, 2, 1), "https://example.com/a.htm")
    assert record.state is ProcessingState.PENDING

    record.finalize(False, "fetch failed")
    assert record.state is ProcessingState.FAILURE
    assert record.error_message == "fetch failed"
    assert record.processed_date is not None

    record.finalize(True, "ignored")
    assert record.state is ProcessingState.SUCCESS
    assert record.error_message is None

    record.reset()
    assert record.state is ProcessingState.PENDING
    assert record.success is None
    assert record.processed_date is None


def test_record_payload_round_trip_keeps_fields() -> None:
    record = FilingRecord.new(
        "Acme Corp", "8-K", date(2023, 9, 30), "https://example.com/b.htm", scope="nightly"
    )
    record.finalize(False, "sink rejected document")

    restored = FilingRecord.from_payload(record.to_payload())

    assert restored == record
