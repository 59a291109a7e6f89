"""Durable inventory backend on a SQL table through SQLAlchemy."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime

from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..db import Base, create_engine, create_session_factory
from ..errors import BackendUnavailableError, InventoryConfigurationError
from ..models.filing import FilingRecordRow
from .base import build_metrics, build_yearly_metrics, collect_errors
from .metrics import INVENTORY_ERRORS_TOTAL, RECORDS_FINALIZED_TOTAL, RECORDS_REGISTERED_TOTAL
from .models import CrawlMetrics, FilingRecord, ProcessingError, YearlyMetrics, document_id

LOGGER = logging.getLogger(__name__)

_BACKEND = "sql"
_UNSCOPED = ""


class SqlInventory:
    """Inventory stored in the ``filing_records`` table.

    The unscoped partition is stored as an empty string so the ``(url, scope)``
    unique constraint holds for it too; a registration that loses an insert race
    is retried as a reset. There is no client-side lock: two overlapping crawls
    finalizing the same record race, last write wins.
    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        engine: AsyncEngine | None = None,
        echo: bool = False,
        auto_create: bool = True,
    ) -> None:
        self._database_url = database_url
        self._engine = engine
        self._echo = echo
        self._auto_create = auto_create
        self._session_factory: async_sessionmaker[AsyncSession] | None = (
            create_session_factory(engine) if engine is not None else None
        )
        self._owns_engine = engine is None

    @property
    def storage_type(self) -> str:
        return "SQL Table Storage"

    async def initialize(self) -> None:
        if self._engine is None:
            if not self._database_url:
                raise InventoryConfigurationError("A database URL is required for the SQL inventory")
            try:
                self._engine = create_engine(self._database_url, echo=self._echo)
            except (SQLAlchemyError, ValueError) as exc:
                raise InventoryConfigurationError(f"Invalid database URL: {exc}") from exc
            self._session_factory = create_session_factory(self._engine)

        if self._auto_create:
            try:
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except (SQLAlchemyError, OSError) as exc:
                LOGGER.exception("Failed to initialize SQL inventory")
                raise InventoryConfigurationError(f"Cannot prepare inventory table: {exc}") from exc
            LOGGER.info("Ensured inventory table exists", extra={"table": FilingRecordRow.__tablename__})

        LOGGER.info("SQL inventory initialized")

    async def insert_if_absent(
        self,
        entity_name: str,
        form: str,
        filing_date: date,
        url: str,
        scope: str | None = None,
    ) -> FilingRecord:
        try:
            try:
                record, outcome = await self._register(entity_name, form, filing_date, url, scope)
            except IntegrityError:
                # a concurrent crawl inserted the same (url, scope) first
                LOGGER.debug("Registration raced, retrying as reset", extra={"url": url})
                record, outcome = await self._register(entity_name, form, filing_date, url, scope)
        except SQLAlchemyError as exc:
            raise self._unavailable("insert", exc) from exc

        RECORDS_REGISTERED_TOTAL.labels(_BACKEND, outcome).inc()
        LOGGER.debug(
            "Registered document",
            extra={"url": url, "scope": scope, "outcome": outcome},
        )
        return record

    async def _register(
        self,
        entity_name: str,
        form: str,
        filing_date: date,
        url: str,
        scope: str | None,
    ) -> tuple[FilingRecord, str]:
        factory = self._require_factory()
        async with factory() as session:
            async with session.begin():
                row = await self._find(session, url, scope)
                if row is not None:
                    row.processed = False
                    row.processed_date = None
                    row.success = None
                    row.error_message = None
                    outcome = "reset"
                else:
                    row = FilingRecordRow(
                        id=document_id(url),
                        entity_name=entity_name,
                        form=form,
                        filing_date=filing_date,
                        url=url,
                        processed=False,
                        scope=_scope_key(scope),
                    )
                    session.add(row)
                    outcome = "inserted"
                record = _to_record(row)
        return record, outcome

    async def mark_processed(
        self,
        url: str,
        success: bool,
        error_message: str | None = None,
        scope: str | None = None,
    ) -> bool:
        factory = self._require_factory()
        try:
            async with factory() as session:
                async with session.begin():
                    row = await self._find(session, url, scope)
                    if row is None:
                        LOGGER.warning(
                            "Document not found for processing",
                            extra={"url": url, "scope": scope},
                        )
                        return False
                    row.processed = True
                    row.processed_date = datetime.now(UTC)
                    row.success = success
                    row.error_message = None if success else error_message
        except SQLAlchemyError as exc:
            raise self._unavailable("mark_processed", exc) from exc

        RECORDS_FINALIZED_TOTAL.labels(_BACKEND, "success" if success else "failure").inc()
        return True

    async def get_unprocessed(
        self, scope: str | None = None, entity_name: str | None = None
    ) -> list[FilingRecord]:
        return await self._select("get_unprocessed", entity_name, scope, pending_only=True)

    async def get_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> CrawlMetrics:
        records = await self._select("get_metrics", entity_filter, scope)
        return build_metrics(records, entity_filter)

    async def get_processing_errors(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> list[ProcessingError]:
        return collect_errors(await self._select("get_processing_errors", entity_filter, scope))

    async def get_yearly_metrics(
        self, entity_filter: str | None = None, scope: str | None = None
    ) -> dict[int, YearlyMetrics]:
        return build_yearly_metrics(await self._select("get_yearly_metrics", entity_filter, scope))

    async def delete_scope(self, scope: str) -> int:
        factory = self._require_factory()
        try:
            async with factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(FilingRecordRow).where(FilingRecordRow.scope == scope)
                    )
                    removed = int(getattr(result, "rowcount", 0) or 0)
        except SQLAlchemyError as exc:
            raise self._unavailable("delete_scope", exc) from exc
        LOGGER.info("Deleted inventory scope", extra={"scope": scope, "removed": removed})
        return removed

    async def is_healthy(self) -> bool:
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError):
            LOGGER.warning("SQL inventory health check failed", exc_info=True)
            return False

    async def close(self) -> None:
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def _select(
        self,
        operation: str,
        entity_filter: str | None,
        scope: str | None,
        *,
        pending_only: bool = False,
    ) -> list[FilingRecord]:
        factory = self._require_factory()
        stmt = select(FilingRecordRow).order_by(FilingRecordRow.pk)
        if scope is not None:
            stmt = stmt.where(FilingRecordRow.scope == scope)
        if pending_only:
            stmt = stmt.where(FilingRecordRow.processed.is_(False))
        try:
            async with factory() as session:
                rows: Sequence[FilingRecordRow] = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise self._unavailable(operation, exc) from exc

        records = [_to_record(row) for row in rows]
        if entity_filter:
            # case-insensitive match kept client-side so every dialect agrees
            wanted = entity_filter.casefold()
            records = [record for record in records if record.entity_name.casefold() == wanted]
        return records

    async def _find(
        self, session: AsyncSession, url: str, scope: str | None
    ) -> FilingRecordRow | None:
        stmt = select(FilingRecordRow).where(
            FilingRecordRow.url == url, FilingRecordRow.scope == _scope_key(scope)
        )
        result = await session.execute(stmt.order_by(FilingRecordRow.pk).limit(1))
        return result.scalar_one_or_none()

    def _require_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise BackendUnavailableError("SQL inventory used before initialize()")
        return self._session_factory

    def _unavailable(self, operation: str, exc: Exception) -> BackendUnavailableError:
        INVENTORY_ERRORS_TOTAL.labels(_BACKEND, operation).inc()
        LOGGER.error(
            "SQL inventory operation failed",
            extra={"operation": operation, "error": str(exc)},
        )
        return BackendUnavailableError(f"SQL inventory {operation} failed: {exc}")


def _to_record(row: FilingRecordRow) -> FilingRecord:
    return FilingRecord(
        id=row.id,
        entity_name=row.entity_name,
        form=row.form,
        filing_date=row.filing_date,
        url=row.url,
        processed=bool(row.processed),
        processed_date=_aware(row.processed_date),
        success=row.success,
        error_message=row.error_message,
        scope=row.scope or None,
    )


def _scope_key(scope: str | None) -> str:
    return _UNSCOPED if scope is None else scope


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on round-trip
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
