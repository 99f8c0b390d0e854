# ─────────────────────────────────────────────────────────────────────────────
# Request Handlers — cache resource and stats, independent of FastAPI routing
# ─────────────────────────────────────────────────────────────────────────────
# Each handler is built once with the shared engine and reused for every
# request. No locking here: ShardedCache synchronizes per shard.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

from collections.abc import AsyncIterator

import structlog
from starlette.requests import ClientDisconnect

from cacheserver.cache.engine import CacheEngineError, EntryNotFoundError, ShardedCache
from cacheserver.exceptions import BadRequestError, InternalError, KeyNotFoundError
from cacheserver.schemas import StatsResponse

logger = structlog.get_logger(__name__)


class CacheResource:
    """GET / PUT / DELETE semantics for a single key."""

    def __init__(self, cache: ShardedCache, max_body_bytes: int) -> None:
        self._cache = cache
        self._max_body_bytes = max_body_bytes

    def get(self, key: str) -> bytes:
        if not key:
            raise BadRequestError("Key must not be empty")
        try:
            value = self._cache.get(key)
        except EntryNotFoundError as e:
            logger.debug("cache_get", key=key, hit=False)
            raise KeyNotFoundError(key) from e
        logger.debug("cache_get", key=key, hit=True, size=len(value))
        return value

    async def put(self, key: str, body: AsyncIterator[bytes]) -> None:
        # Reject before touching the body.
        if not key:
            raise BadRequestError("Key must not be empty")

        value = await self._read_body(key, body)

        try:
            self._cache.set(key, value)
        except (CacheEngineError, ValueError) as e:
            logger.warning("cache_put_rejected", key=key, size=len(value), error=str(e))
            raise InternalError(f"Cannot store '{key}': {e}") from e
        logger.debug("cache_put", key=key, size=len(value))

    async def _read_body(self, key: str, body: AsyncIterator[bytes]) -> bytes:
        buffer = bytearray()
        try:
            async for chunk in body:
                buffer += chunk
                if len(buffer) > self._max_body_bytes:
                    logger.warning("cache_put_body_too_large", key=key, limit=self._max_body_bytes)
                    raise InternalError(
                        f"Request body for '{key}' exceeds {self._max_body_bytes} bytes"
                    )
        except (OSError, ClientDisconnect) as e:
            logger.warning("cache_put_read_failed", key=key, error=str(e))
            raise InternalError(f"Cannot read request body for '{key}'") from e
        return bytes(buffer)

    def delete(self, key: str) -> None:
        # Empty key is 404 here, unlike the 400 from get/put.
        if not key:
            raise KeyNotFoundError(key)
        try:
            self._cache.delete(key)
        except EntryNotFoundError as e:
            logger.debug("cache_delete", key=key, deleted=False)
            raise KeyNotFoundError(key) from e
        logger.debug("cache_delete", key=key, deleted=True)


class StatsResource:
    """Read-only view of the engine's counters."""

    def __init__(self, cache: ShardedCache) -> None:
        self._cache = cache

    def snapshot(self) -> StatsResponse:
        return StatsResponse.from_stats(self._cache.stats())

    @staticmethod
    async def discard(body: AsyncIterator[bytes]) -> int:
        """Drain and drop a request body so the connection stays reusable."""
        drained = 0
        async for chunk in body:
            drained += len(chunk)
        return drained
