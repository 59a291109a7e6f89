"""HTTP fetching with exponential backoff and Retry-After handling."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx

from ..errors import CrawlCancelledError, RateLimitedError
from .metrics import FETCH_ATTEMPTS_TOTAL, FETCH_BACKOFF_SECONDS

LOGGER = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF"


class FetchResult(enum.Enum):
    FAILED = "fetch_failed"


FETCH_FAILED = FetchResult.FAILED


def is_pdf_url(url: str) -> bool:
    return ".pdf" in url.lower()


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Interpret a ``Retry-After`` header given as seconds or as an HTTP-date."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return seconds if seconds >= 0 else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    reference = now or datetime.now(UTC)
    return max(0.0, (when - reference).total_seconds())


@dataclass(slots=True)
class FetchPolicy:
    max_attempts: int = 5
    initial_delay: float = 5.0
    request_timeout: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay for the ``attempt``-th backoff sleep (1-based)."""
        return self.initial_delay * (2 ** (attempt - 1))


class Fetcher:
    """Fetches documents, retrying transient failures.

    Exhausted retries yield ``FETCH_FAILED`` instead of raising. A set
    ``stop_event`` interrupts backoff sleeps with ``CrawlCancelledError``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        policy: FetchPolicy | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self._http = http_client
        self._policy = policy or FetchPolicy()
        self._stop_event = stop_event

    @property
    def policy(self) -> FetchPolicy:
        return self._policy

    def with_stop_event(self, stop_event: asyncio.Event | None) -> Fetcher:
        return Fetcher(self._http, policy=self._policy, stop_event=stop_event)

    async def fetch_text(self, url: str) -> str | FetchResult:
        response = await self._fetch(url)
        if response is FETCH_FAILED:
            return FETCH_FAILED
        return response.text

    async def fetch_bytes(
        self, url: str, *, signature: bytes | None = PDF_SIGNATURE
    ) -> bytes | FetchResult:
        response = await self._fetch(url)
        if response is FETCH_FAILED:
            return FETCH_FAILED
        data = response.content
        if signature is not None and not data.startswith(signature):
            FETCH_ATTEMPTS_TOTAL.labels("bad_signature").inc()
            LOGGER.warning(
                "Downloaded content failed signature check",
                extra={"url": url, "bytes": len(data)},
            )
            return FETCH_FAILED
        return data

    async def _fetch(self, url: str) -> httpx.Response | FetchResult:
        policy = self._policy
        attempts = max(1, policy.max_attempts)
        # advances only when the doubling policy picks the delay
        backoff_step = 0
        for attempt in range(1, attempts + 1):
            self._raise_if_stopped()
            try:
                response = await self._http.get(url, timeout=policy.request_timeout)
                if response.status_code == 429:
                    raise RateLimitedError(
                        url, parse_retry_after(response.headers.get("Retry-After"))
                    )
                response.raise_for_status()
            except RateLimitedError as exc:
                FETCH_ATTEMPTS_TOTAL.labels("rate_limited").inc()
                if exc.retry_after is not None:
                    delay, reason = exc.retry_after, "retry_after"
                else:
                    backoff_step += 1
                    delay, reason = policy.delay_for(backoff_step), "backoff"
                LOGGER.warning(
                    "Rate limited by remote host",
                    extra={"url": url, "attempt": attempt, "delay": delay},
                )
            except httpx.HTTPError as exc:
                FETCH_ATTEMPTS_TOTAL.labels("error").inc()
                backoff_step += 1
                delay, reason = policy.delay_for(backoff_step), "backoff"
                LOGGER.warning(
                    "Fetch attempt failed",
                    extra={"url": url, "attempt": attempt, "error": str(exc)},
                )
            else:
                FETCH_ATTEMPTS_TOTAL.labels("success").inc()
                return response

            if attempt < attempts:
                FETCH_BACKOFF_SECONDS.labels(reason).observe(delay)
                await self._sleep(delay)

        FETCH_ATTEMPTS_TOTAL.labels("exhausted").inc()
        LOGGER.error("Giving up on document", extra={"url": url, "attempts": attempts})
        return FETCH_FAILED

    async def _sleep(self, delay: float) -> None:
        if self._stop_event is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            return
        raise CrawlCancelledError("Stop requested during fetch backoff")

    def _raise_if_stopped(self) -> None:
        if self._stop_event is not None and self._stop_event.is_set():
            raise CrawlCancelledError("Stop requested before fetch")
