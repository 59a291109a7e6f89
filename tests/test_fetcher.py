from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime
from unittest.mock import AsyncMock

import httpx
import pytest
from edgar_crawler.errors import CrawlCancelledError
from edgar_crawler.processing.fetcher import (
    FETCH_FAILED,
    Fetcher,
    FetchPolicy,
    is_pdf_url,
    parse_retry_after,
)

URL = "https://www.sec.gov/Archives/edgar/data/1234/000123425000001/doc.htm"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_policy_doubles_delay() -> None:
    policy = FetchPolicy(max_attempts=5, initial_delay=5.0)
    assert [policy.delay_for(attempt) for attempt in range(1, 5)] == [5.0, 10.0, 20.0, 40.0]


def test_parse_retry_after_accepts_seconds_and_dates() -> None:
    now = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    assert parse_retry_after("7") == 7.0
    assert parse_retry_after(format_datetime(now + timedelta(seconds=30), usegmt=True), now=now) == 30.0
    assert parse_retry_after(format_datetime(now - timedelta(seconds=30), usegmt=True), now=now) == 0.0
    assert parse_retry_after("soon") is None
    assert parse_retry_after(None) is None


def test_is_pdf_url() -> None:
    assert is_pdf_url("https://example.com/report.PDF")
    assert not is_pdf_url(URL)


@pytest.mark.asyncio
async def test_backoff_grows_and_gives_up(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep = AsyncMock()
    monkeypatch.setattr("edgar_crawler.processing.fetcher.asyncio.sleep", sleep)
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503)

    async with _client(handler) as client:
        fetcher = Fetcher(client, policy=FetchPolicy(max_attempts=5, initial_delay=5.0))
        result = await fetcher.fetch_text(URL)

    assert result is FETCH_FAILED
    assert calls == 5
    assert [call.args[0] for call in sleep.await_args_list] == [5.0, 10.0, 20.0, 40.0]


@pytest.mark.asyncio
async def test_retry_after_takes_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep = AsyncMock()
    monkeypatch.setattr("edgar_crawler.processing.fetcher.asyncio.sleep", sleep)
    responses = [
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(429),
        httpx.Response(200, text="<html>ok</html>"),
    ]

    async def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    async with _client(handler) as client:
        fetcher = Fetcher(client, policy=FetchPolicy(max_attempts=5, initial_delay=5.0))
        result = await fetcher.fetch_text(URL)

    assert result == "<html>ok</html>"
    # the hinted wait does not advance the doubling sequence
    assert [call.args[0] for call in sleep.await_args_list] == [2.0, 5.0]


@pytest.mark.asyncio
async def test_backoff_resumes_from_initial_delay_after_retry_after(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    sleep = AsyncMock()
    monkeypatch.setattr("edgar_crawler.processing.fetcher.asyncio.sleep", sleep)
    responses = [
        httpx.Response(429, headers={"Retry-After": "1"}),
        httpx.Response(500),
        httpx.Response(500),
        httpx.Response(200, text="filing"),
    ]

    async def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    async with _client(handler) as client:
        fetcher = Fetcher(client, policy=FetchPolicy(max_attempts=5, initial_delay=5.0))
        result = await fetcher.fetch_text(URL)

    assert result == "filing"
    assert [call.args[0] for call in sleep.await_args_list] == [1.0, 5.0, 10.0]


@pytest.mark.asyncio
async def test_transport_errors_are_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("edgar_crawler.processing.fetcher.asyncio.sleep", AsyncMock())
    attempts = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, text="done")

    async with _client(handler) as client:
        result = await Fetcher(client).fetch_text(URL)

    assert result == "done"
    assert attempts == 2


@pytest.mark.asyncio
async def test_fetch_bytes_rejects_bad_signature() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not a pdf</html>")

    async with _client(handler) as client:
        result = await Fetcher(client).fetch_bytes("https://example.com/report.pdf")

    assert result is FETCH_FAILED


@pytest.mark.asyncio
async def test_fetch_bytes_returns_pdf_payload() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"%PDF-1.7 body")

    async with _client(handler) as client:
        result = await Fetcher(client).fetch_bytes("https://example.com/report.pdf")

    assert result == b"%PDF-1.7 body"


@pytest.mark.asyncio
async def test_stop_event_interrupts_backoff() -> None:
    stop_event = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    async with _client(handler) as client:
        fetcher = Fetcher(
            client,
            policy=FetchPolicy(max_attempts=3, initial_delay=60.0),
            stop_event=stop_event,
        )
        task = asyncio.create_task(fetcher.fetch_text(URL))
        await asyncio.sleep(0.05)
        stop_event.set()
        with pytest.raises(CrawlCancelledError):
            await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_task_cancellation_interrupts_backoff() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    async with _client(handler) as client:
        fetcher = Fetcher(client, policy=FetchPolicy(max_attempts=3, initial_delay=60.0))
        task = asyncio.create_task(fetcher.fetch_text(URL))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
