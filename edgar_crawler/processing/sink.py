"""Downstream sinks receiving extracted documents."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexDocument:
    """A processed filing ready for the search index."""

    id: str
    title: str
    entity_name: str
    url: str
    date: str
    form: str
    content: str

    def to_payload(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "entityName": self.entity_name,
            "url": self.url,
            "date": self.date,
            "form": self.form,
            "content": self.content,
        }


class DocumentSink(Protocol):
    async def push(self, document: IndexDocument) -> bool:
        """Deliver ``document``; ``False`` means it was rejected."""


class HttpIndexSink:
    """POSTs documents as JSON; any 2xx response counts as accepted."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._http = http_client
        self._url = url
        self._timeout = timeout

    async def push(self, document: IndexDocument) -> bool:
        try:
            response = await self._http.post(
                self._url, json=document.to_payload(), timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            LOGGER.error(
                "Index sink request failed",
                extra={"document_id": document.id, "error": str(exc)},
            )
            return False
        if response.is_success:
            return True
        LOGGER.error(
            "Index sink rejected document",
            extra={"document_id": document.id, "status": response.status_code},
        )
        return False


class InMemorySink:
    def __init__(self, *, accept: bool = True) -> None:
        self.documents: list[IndexDocument] = []
        self._accept = accept
        self._lock = asyncio.Lock()

    async def push(self, document: IndexDocument) -> bool:
        async with self._lock:
            if self._accept:
                self.documents.append(document)
            return self._accept


class NullSink:
    """Accepts and discards everything; used when no sink is configured."""

    async def push(self, document: IndexDocument) -> bool:
        LOGGER.debug("Discarding document", extra={"document_id": document.id})
        return True
