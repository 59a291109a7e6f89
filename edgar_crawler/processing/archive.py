"""Archival of a processed filing's raw download and extracted text.

Every filing gets its own prefix named after the record id::

    <id>/raw/<file name from the filing URL>
    <id>/text/content.txt

Archival never fails a filing: each artifact that cannot be written is logged,
counted and left out of the returned locations.
"""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from minio import Minio

from ..inventory.models import FilingRecord
from .metrics import ARCHIVE_ERRORS_TOTAL

LOGGER = logging.getLogger(__name__)

TEXT_FILENAME = "content.txt"


class FilingArchive(Protocol):
    async def archive(
        self, record: FilingRecord, raw: bytes, raw_type: str, text: str
    ) -> list[str]:
        """Store the filing's artifacts and return the locations that were written."""


def raw_filename(url: str) -> str:
    return urlparse(url).path.rsplit("/", 1)[-1] or "document"


def filing_prefix(record: FilingRecord) -> str:
    return record.id


class _KeyedFilingArchive:
    """Lays out a filing's artifacts and tolerates failures per artifact."""

    async def archive(
        self, record: FilingRecord, raw: bytes, raw_type: str, text: str
    ) -> list[str]:
        prefix = filing_prefix(record)
        artifacts = (
            ("raw", f"{prefix}/raw/{raw_filename(record.url)}", raw, raw_type),
            ("text", f"{prefix}/text/{TEXT_FILENAME}", text.encode("utf-8"), "text/plain"),
        )
        locations: list[str] = []
        for artifact, key, data, content_type in artifacts:
            try:
                locations.append(await self._put(record, key, data, content_type))
            except Exception as exc:
                ARCHIVE_ERRORS_TOTAL.labels(artifact).inc()
                LOGGER.warning(
                    "Failed to archive artifact",
                    extra={"url": record.url, "artifact": artifact, "error": str(exc)},
                )
        if locations:
            LOGGER.debug(
                "Archived filing", extra={"url": record.url, "artifacts": len(locations)}
            )
        return locations

    async def _put(
        self, record: FilingRecord, key: str, data: bytes, content_type: str
    ) -> str:
        raise NotImplementedError


class MinioFilingArchive(_KeyedFilingArchive):
    """Writes filing artifacts to a MinIO bucket, creating it on first use.

    Objects carry the entity, form and filing date as user metadata so the
    bucket can be browsed without the inventory.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool,
        region: str | None = None,
        client: Minio | None = None,
    ) -> None:
        self._bucket = bucket
        self._bucket_ready = False
        if client is None:
            parsed = urlparse(endpoint)
            client = Minio(
                parsed.netloc or parsed.path,
                access_key=access_key,
                secret_key=secret_key,
                secure=secure,
                region=region,
            )
        self._client = client

    async def ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        exists = await asyncio.to_thread(self._client.bucket_exists, self._bucket)
        if not exists:
            await asyncio.to_thread(self._client.make_bucket, self._bucket)
            LOGGER.info("Created archive bucket", extra={"bucket": self._bucket})
        self._bucket_ready = True

    async def _put(
        self, record: FilingRecord, key: str, data: bytes, content_type: str
    ) -> str:
        await self.ensure_bucket()
        metadata = {
            "entity": record.entity_name,
            "form": record.form,
            "filingDate": record.filing_date.isoformat(),
        }

        def upload() -> None:
            self._client.put_object(
                self._bucket,
                key,
                io.BytesIO(data),
                len(data),
                content_type=content_type,
                metadata=metadata,
            )

        await asyncio.to_thread(upload)
        return f"s3://{self._bucket}/{key}"


class LocalFilingArchive(_KeyedFilingArchive):
    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    async def _put(
        self, record: FilingRecord, key: str, data: bytes, content_type: str
    ) -> str:
        path = self._root / key

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(write)
        return f"file://{path}"
