"""Crawl orchestration: resolve entities, discover their filings, drain the backlog."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
from redis.asyncio import Redis

from .config import Settings
from .discovery.cache import EntityCache, InMemoryEntityCache, RedisEntityCache
from .discovery.discoverer import FilingDiscoverer
from .discovery.feed import SubmissionFeedClient
from .discovery.models import CrawlContext, DiscoveryResult, TrackedEntity
from .discovery.resolver import EntityResolver
from .errors import CrawlCancelledError, DirectoryUnavailableError
from .inventory.base import Inventory
from .processing.archive import FilingArchive, MinioFilingArchive
from .processing.coordinator import ProcessingCoordinator, ProcessingSummary
from .processing.extractor import ContentExtractor, DefaultContentExtractor
from .processing.fetcher import Fetcher, FetchPolicy
from .processing.sink import DocumentSink, HttpIndexSink, NullSink

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class EntityReport:
    entity: TrackedEntity
    discovery: DiscoveryResult = field(default_factory=DiscoveryResult)
    processing: ProcessingSummary = field(default_factory=ProcessingSummary)
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "entity": self.entity.to_payload(),
            "registered": self.discovery.registered,
            "processing": self.processing.to_payload(),
            "error": self.error,
        }


@dataclass(slots=True)
class CrawlReport:
    """Aggregate outcome of one crawl run."""

    scope: str | None = None
    entities: list[EntityReport] = field(default_factory=list)
    skipped_entities: list[str] = field(default_factory=list)
    entities_with_new_content: set[str] = field(default_factory=set)
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return sum(item.processing.succeeded for item in self.entities)

    @property
    def failed(self) -> int:
        return sum(item.processing.failed for item in self.entities)

    def to_payload(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skippedEntities": list(self.skipped_entities),
            "entitiesWithNewContent": sorted(self.entities_with_new_content),
            "cancelled": self.cancelled,
            "entities": [item.to_payload() for item in self.entities],
        }


class CrawlService:
    """Owns the HTTP client and pipeline components for crawl runs.

    Components may be injected for tests; anything left out is built from
    settings when the service starts.
    """

    def __init__(
        self,
        settings: Settings,
        inventory: Inventory,
        *,
        http_client: httpx.AsyncClient | None = None,
        sink: DocumentSink | None = None,
        extractor: ContentExtractor | None = None,
        archive: FilingArchive | None = None,
        cache: EntityCache | None = None,
    ) -> None:
        self._settings = settings
        self._inventory = inventory
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._sink = sink
        self._extractor = extractor
        self._archive = archive
        self._cache = cache
        self._resolver: EntityResolver | None = None
        self._discoverer: FilingDiscoverer | None = None
        self._coordinator: ProcessingCoordinator | None = None
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        settings = self._settings

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                headers={
                    "User-Agent": settings.edgar_user_agent,
                    "Accept-Encoding": "gzip, deflate",
                },
                follow_redirects=True,
                timeout=settings.fetch_request_timeout,
            )
        http_client = self._http_client

        if self._cache is None:
            if settings.redis_url:
                redis = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
                self._cache = RedisEntityCache(redis, ttl_seconds=settings.entity_cache_ttl_seconds)
            else:
                self._cache = InMemoryEntityCache()
        if self._sink is None:
            if settings.sink_url:
                self._sink = HttpIndexSink(http_client, settings.sink_url, timeout=settings.sink_timeout)
            else:
                self._sink = NullSink()
        if self._archive is None and settings.archive_enabled:
            self._archive = MinioFilingArchive(
                endpoint=settings.minio_endpoint,
                access_key=settings.minio_access_key,
                secret_key=settings.minio_secret_key,
                bucket=settings.minio_filings_bucket,
                secure=settings.minio_secure,
                region=settings.minio_region,
            )

        self._resolver = EntityResolver(
            http_client, tickers_url=str(settings.edgar_tickers_url), cache=self._cache
        )
        self._discoverer = FilingDiscoverer(
            SubmissionFeedClient(http_client, base_url=settings.edgar_submissions_base_url),
            self._inventory,
            years_of_data=settings.retention_years,
            archive_base_url=settings.edgar_archive_base_url,
        )
        fetcher = Fetcher(
            http_client,
            policy=FetchPolicy(
                max_attempts=settings.fetch_max_attempts,
                initial_delay=settings.fetch_initial_delay_seconds,
                request_timeout=settings.fetch_request_timeout,
            ),
        )
        self._coordinator = ProcessingCoordinator(
            self._inventory,
            fetcher,
            self._extractor or DefaultContentExtractor(),
            self._sink,
            included_form_types=settings.included_form_types,
            archive=self._archive,
        )
        self._started = True
        LOGGER.info("Crawl service started", extra={"storage": self._inventory.storage_type})

    async def stop(self) -> None:
        if not self._started:
            return
        if isinstance(self._cache, RedisEntityCache):
            await self._cache.close()
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        self._started = False
        LOGGER.info("Crawl service stopped")

    async def crawl(
        self,
        identifiers: Sequence[str],
        *,
        scope: str | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> CrawlReport:
        """Resolve ``identifiers`` and crawl each entity in turn."""
        resolver = self._require(self._resolver)
        try:
            entities, missing = await resolver.resolve_batch(identifiers)
        except DirectoryUnavailableError as exc:
            LOGGER.error("Cannot resolve entities", extra={"error": str(exc)})
            report = CrawlReport(scope=scope, skipped_entities=list(identifiers))
            self._log_report(report)
            return report

        report = await self.crawl_entities(entities, scope=scope, stop_event=stop_event)
        report.skipped_entities[:0] = missing
        return report

    async def crawl_entities(
        self,
        entities: Sequence[TrackedEntity],
        *,
        scope: str | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> CrawlReport:
        discoverer = self._require(self._discoverer)
        coordinator = self._require(self._coordinator)
        report = CrawlReport(scope=scope)

        for entity in entities:
            context = CrawlContext(entity=entity, scope=scope, stop_event=stop_event)
            entity_report = EntityReport(entity=entity)
            report.entities.append(entity_report)
            try:
                if context.stopped:
                    raise CrawlCancelledError("Stop requested before entity")
                entity_report.discovery = await discoverer.discover(context)
                entity_report.processing = await coordinator.process_entity(context)
            except CrawlCancelledError:
                report.cancelled = True
                report.entities_with_new_content |= context.entities_with_new_content
                LOGGER.warning("Crawl cancelled", extra={"entity": entity.name})
                break
            except Exception as exc:
                entity_report.error = str(exc) or exc.__class__.__name__
                LOGGER.exception("Error crawling entity", extra={"entity": entity.name})
            report.entities_with_new_content |= context.entities_with_new_content

        self._log_report(report)
        return report

    def _log_report(self, report: CrawlReport) -> None:
        LOGGER.info(
            "Crawl finished",
            extra={
                "scope": report.scope,
                "entities": len(report.entities),
                "succeeded": report.succeeded,
                "failed": report.failed,
                "skipped_entities": len(report.skipped_entities),
                "cancelled": report.cancelled,
            },
        )

    def _require(self, component: Any) -> Any:
        if component is None:
            raise RuntimeError("Crawl service not started")
        return component
