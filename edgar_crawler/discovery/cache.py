"""Caches for previously resolved entities."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .models import TrackedEntity

LOGGER = logging.getLogger(__name__)


def cache_key(identifier: str) -> str:
    return identifier.strip().casefold()


class EntityCache(Protocol):
    """Protocol for remembering identifier -> entity resolutions."""

    async def get(self, identifier: str) -> TrackedEntity | None:
        """Return the cached entity for ``identifier``, if any."""

    async def put(self, identifier: str, entity: TrackedEntity) -> None:
        """Remember a resolution."""


class RedisEntityCache:
    """Redis-backed cache; lookups degrade to misses when Redis is unavailable."""

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = "edgar:entity",
        ttl_seconds: int = 86400,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._ttl_seconds = ttl_seconds

    async def get(self, identifier: str) -> TrackedEntity | None:
        try:
            result = self._redis.get(self._key(identifier))
            raw = await result if isinstance(result, Awaitable) else result
        except RedisError as exc:
            LOGGER.warning("Entity cache lookup failed", extra={"error": str(exc)})
            return None
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return TrackedEntity.from_payload(json.loads(raw))
        except (ValueError, KeyError):
            LOGGER.warning("Discarding corrupt entity cache entry", extra={"identifier": identifier})
            return None

    async def put(self, identifier: str, entity: TrackedEntity) -> None:
        payload = json.dumps(entity.to_payload())
        try:
            result = self._redis.setex(self._key(identifier), self._ttl_seconds, payload)
            if isinstance(result, Awaitable):
                await result
        except RedisError as exc:
            LOGGER.warning("Entity cache write failed", extra={"error": str(exc)})

    async def close(self) -> None:
        await self._redis.aclose()

    def _key(self, identifier: str) -> str:
        return f"{self._prefix}:{cache_key(identifier)}"


class InMemoryEntityCache:
    """Process-local cache used by default and in tests."""

    def __init__(self) -> None:
        self._entries: dict[str, TrackedEntity] = {}
        self._lock = asyncio.Lock()

    async def get(self, identifier: str) -> TrackedEntity | None:
        async with self._lock:
            return self._entries.get(cache_key(identifier))

    async def put(self, identifier: str, entity: TrackedEntity) -> None:
        async with self._lock:
            self._entries[cache_key(identifier)] = entity
