"""Resolve human identifiers (ticker or company name) to registry ids."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import httpx

from ..errors import DirectoryUnavailableError, EntityNotFoundError
from .cache import EntityCache, InMemoryEntityCache
from .metrics import RESOLUTIONS_TOTAL
from .models import TrackedEntity

LOGGER = logging.getLogger(__name__)

DEFAULT_TICKERS_URL = "https://www.sec.gov/files/company_tickers.json"

Directory = Mapping[str, Mapping[str, Any]]


def match_entity(directory: Directory, identifier: str) -> TrackedEntity | None:
    """Find ``identifier`` in the directory.

    An exact, case-insensitive ticker match wins over a title match; otherwise the
    first title containing the identifier is returned.
    """
    needle = identifier.strip().casefold()
    if not needle:
        return None

    title_match: Mapping[str, Any] | None = None
    for item in directory.values():
        ticker = str(item.get("ticker", "")).strip()
        if ticker.casefold() == needle:
            return _to_entity(item)
        if title_match is None and needle in str(item.get("title", "")).casefold():
            title_match = item
    return _to_entity(title_match) if title_match is not None else None


def _to_entity(item: Mapping[str, Any]) -> TrackedEntity:
    return TrackedEntity(
        cik=str(item.get("cik_str", "")).strip(),
        name=str(item.get("title", "")).strip(),
        ticker=str(item.get("ticker", "")).strip(),
    )


class EntityResolver:
    """Maps identifiers to entities, consulting a cache before the SEC directory."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        tickers_url: str = DEFAULT_TICKERS_URL,
        cache: EntityCache | None = None,
    ) -> None:
        self._http = http_client
        self._tickers_url = tickers_url
        self._cache: EntityCache = cache or InMemoryEntityCache()

    async def resolve(self, identifier: str) -> TrackedEntity:
        """Resolve a single identifier, raising ``EntityNotFoundError`` when nothing matches."""
        cached = await self._cache.get(identifier)
        if cached is not None:
            RESOLUTIONS_TOTAL.labels("cache").inc()
            return cached
        directory = await self.fetch_directory()
        return await self._resolve_from(directory, identifier)

    async def resolve_many(self, identifiers: Sequence[str]) -> list[TrackedEntity]:
        """Resolve a batch in order; unknown identifiers are logged and skipped."""
        resolved, _ = await self.resolve_batch(identifiers)
        return resolved

    async def resolve_batch(
        self, identifiers: Sequence[str]
    ) -> tuple[list[TrackedEntity], list[str]]:
        """Return ``(resolved, missing)``, fetching the directory at most once."""
        resolved: list[TrackedEntity] = []
        missing: list[str] = []
        directory: Directory | None = None
        for identifier in _unique(identifiers):
            cached = await self._cache.get(identifier)
            if cached is not None:
                RESOLUTIONS_TOTAL.labels("cache").inc()
                resolved.append(cached)
                continue
            if directory is None:
                directory = await self.fetch_directory()
            try:
                resolved.append(await self._resolve_from(directory, identifier))
            except EntityNotFoundError:
                missing.append(identifier)
                LOGGER.error("Company not found", extra={"identifier": identifier})
        return resolved, missing

    async def fetch_directory(self) -> Directory:
        try:
            response = await self._http.get(self._tickers_url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error(
                "Failed to fetch identifier directory",
                extra={"url": self._tickers_url, "error": str(exc)},
            )
            raise DirectoryUnavailableError(f"Cannot load {self._tickers_url}: {exc}") from exc
        if not isinstance(payload, dict):
            raise DirectoryUnavailableError("Identifier directory is not a JSON object")
        LOGGER.debug("Fetched identifier directory", extra={"entries": len(payload)})
        return payload

    async def _resolve_from(self, directory: Directory, identifier: str) -> TrackedEntity:
        entity = match_entity(directory, identifier)
        if entity is None or not entity.cik:
            RESOLUTIONS_TOTAL.labels("not_found").inc()
            raise EntityNotFoundError(identifier)
        RESOLUTIONS_TOTAL.labels("directory").inc()
        await self._cache.put(identifier, entity)
        LOGGER.info(
            "Resolved entity",
            extra={"identifier": identifier, "cik": entity.cik, "entity": entity.name},
        )
        return entity


def _unique(identifiers: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for raw in identifiers:
        token = raw.strip()
        if not token or token.casefold() in seen:
            continue
        seen.add(token.casefold())
        ordered.append(token)
    return ordered
