from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path

import pytest
from edgar_crawler.errors import BackendUnavailableError
from edgar_crawler.inventory import (
    Inventory,
    LocalFileInventory,
    ProcessingState,
    document_id,
)

ACME = "Acme Corp"
BASE = "https://www.sec.gov/Archives/edgar/data/1234"


@pytest.mark.asyncio
async def test_insert_if_absent_is_idempotent(inventory: Inventory) -> None:
    url = f"{BASE}/000123425000001/acme-10k.htm"
    first = await inventory.insert_if_absent(ACME, "10-K", date(2024, 2, 1), url)
    second = await inventory.insert_if_absent(ACME, "10-K", date(2024, 2, 1), url)

    assert first.id == second.id == document_id(url)
    metrics = await inventory.get_metrics()
    assert metrics.total_documents == 1
    pending = await inventory.get_unprocessed()
    assert [record.url for record in pending] == [url]


@pytest.mark.asyncio
async def test_reinsert_resets_processed_record(inventory: Inventory) -> None:
    url = f"{BASE}/000123425000002/acme-10q.htm"
    await inventory.insert_if_absent(ACME, "10-Q", date(2024, 5, 1), url)
    assert await inventory.mark_processed(url, False, "fetch failed")

    record = await inventory.insert_if_absent(ACME, "10-Q", date(2024, 5, 1), url)

    assert record.id == document_id(url)
    assert record.state is ProcessingState.PENDING
    assert record.processed_date is None
    assert record.success is None
    assert record.error_message is None
    assert [item.url for item in await inventory.get_unprocessed()] == [url]
    assert await inventory.get_processing_errors() == []


@pytest.mark.asyncio
async def test_metrics_agree_across_backends(inventory: Inventory) -> None:
    urls = [f"{BASE}/00012342500000{index}/doc{index}.htm" for index in range(3)]
    for url in urls:
        await inventory.insert_if_absent(ACME, "10-K", date(2024, 3, 1), url)

    assert await inventory.mark_processed(urls[0], True)
    assert await inventory.mark_processed(urls[1], True)
    assert await inventory.mark_processed(urls[2], False, "sink rejected document")

    metrics = await inventory.get_metrics()
    assert metrics.total_documents == 3
    assert metrics.processed_documents == 3
    assert metrics.successful_documents == 2
    assert metrics.failed_documents == 1
    assert metrics.pending_documents == 0
    assert metrics.success_rate == pytest.approx(200 / 3)
    assert metrics.form_type_counts == {"10-K": 3}
    assert metrics.last_processed_date is not None

    errors = await inventory.get_processing_errors()
    assert [(error.url, error.error_message) for error in errors] == [
        (urls[2], "sink rejected document")
    ]


@pytest.mark.asyncio
async def test_acme_scenario(inventory: Inventory) -> None:
    annual = f"{BASE}/000123424000010/acme-10k.htm"
    quarterly = f"{BASE}/000123424000011/acme-10q.pdf"
    await inventory.insert_if_absent(ACME, "10-K", date(2024, 2, 15), annual)
    await inventory.insert_if_absent(ACME, "10-Q", date(2023, 11, 2), quarterly)
    await inventory.insert_if_absent("Other Inc", "8-K", date(2023, 6, 1), f"{BASE}/x/other.htm")

    await inventory.mark_processed(annual, True)
    await inventory.mark_processed(quarterly, False, "fetch failed")

    metrics = await inventory.get_metrics(entity_filter="acme corp")
    assert metrics.entity_name == "acme corp"
    assert metrics.total_documents == 2
    assert metrics.successful_documents == 1
    assert metrics.failed_documents == 1
    assert metrics.success_rate == pytest.approx(50.0)

    yearly = await inventory.get_yearly_metrics(entity_filter=ACME)
    assert list(yearly) == [2023, 2024]
    assert yearly[2023].failed_documents == 1
    assert yearly[2024].successful_documents == 1
    assert yearly[2024].entities == [ACME]

    everyone = await inventory.get_yearly_metrics()
    assert everyone[2023].entities == [ACME, "Other Inc"]
    assert everyone[2023].form_type_counts == {"10-Q": 1, "8-K": 1}

    pending = await inventory.get_unprocessed(entity_name=ACME)
    assert pending == []


@pytest.mark.asyncio
async def test_scopes_partition_records(inventory: Inventory) -> None:
    url = f"{BASE}/000123425000003/acme-8k.htm"
    await inventory.insert_if_absent(ACME, "8-K", date(2024, 7, 1), url, scope="job-a")
    await inventory.insert_if_absent(ACME, "8-K", date(2024, 7, 1), url, scope="job-b")

    assert await inventory.mark_processed(url, True, scope="job-a")

    assert (await inventory.get_metrics(scope="job-a")).successful_documents == 1
    assert [r.scope for r in await inventory.get_unprocessed(scope="job-b")] == ["job-b"]
    assert (await inventory.get_metrics()).total_documents == 2

    removed = await inventory.delete_scope("job-a")
    assert removed == 1
    assert (await inventory.get_metrics(scope="job-a")).total_documents == 0
    assert (await inventory.get_metrics()).total_documents == 1


@pytest.mark.asyncio
async def test_mark_unknown_url_returns_false(inventory: Inventory) -> None:
    assert await inventory.mark_processed(f"{BASE}/missing.htm", True) is False
    assert (await inventory.get_metrics()).total_documents == 0


@pytest.mark.asyncio
async def test_backend_reports_healthy(inventory: Inventory) -> None:
    assert await inventory.is_healthy() is True
    assert inventory.storage_type


@pytest.mark.asyncio
async def test_local_snapshot_uses_camel_case_keys(tmp_path: Path) -> None:
    inventory = LocalFileInventory(tmp_path)
    await inventory.initialize()
    url = f"{BASE}/000123425000004/acme.htm"
    await inventory.insert_if_absent(ACME, "DEF 14A", date(2024, 4, 1), url)
    await inventory.mark_processed(url, False, "fetch failed")

    payload = json.loads(inventory.documents_file.read_text())
    assert payload == [
        {
            "id": document_id(url),
            "entityName": ACME,
            "form": "DEF 14A",
            "filingDate": "2024-04-01",
            "url": url,
            "processed": True,
            "processedDate": payload[0]["processedDate"],
            "success": False,
            "errorMessage": "fetch failed",
            "scope": None,
        }
    ]

    reloaded = LocalFileInventory(tmp_path)
    errors = await reloaded.get_processing_errors(entity_filter=ACME)
    assert [error.url for error in errors] == [url]


@pytest.mark.asyncio
async def test_local_corrupt_snapshot_raises_backend_error(tmp_path: Path) -> None:
    inventory = LocalFileInventory(tmp_path)
    await inventory.initialize()
    inventory.documents_file.write_text("{not json", encoding="utf-8")

    with pytest.raises(BackendUnavailableError):
        await inventory.get_metrics()


@pytest.mark.asyncio
@pytest.mark.parametrize("snapshot", ['{"url": "x"}', '["x"]', "[1]"])
async def test_local_malformed_snapshot_shape_raises_backend_error(
    tmp_path: Path, snapshot: str
) -> None:
    inventory = LocalFileInventory(tmp_path)
    await inventory.initialize()
    inventory.documents_file.write_text(snapshot, encoding="utf-8")

    with pytest.raises(BackendUnavailableError):
        await inventory.get_unprocessed()


@pytest.mark.asyncio
@pytest.mark.parametrize("scope", [None, "nightly"])
async def test_concurrent_registration_keeps_one_record(
    inventory: Inventory, scope: str | None
) -> None:
    url = f"{BASE}/000123425000009/acme-8k.htm"

    records = await asyncio.gather(
        *(
            inventory.insert_if_absent(ACME, "8-K", date(2024, 5, 1), url, scope)
            for _ in range(4)
        )
    )

    assert {record.id for record in records} == {document_id(url)}
    metrics = await inventory.get_metrics(scope=scope)
    assert metrics.total_documents == 1
    assert await inventory.mark_processed(url, True, scope=scope) is True
    assert await inventory.get_unprocessed(scope=scope) == []
