"""Redis adapter - async Redis via redis.asyncio, shared across proxy instances."""

from __future__ import annotations

import asyncio
import pickle
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

log = structlog.get_logger(__name__)


class RedisAdapter:
    """Async Redis cache with bounded parallelism.

    - Uses `redis.asyncio.Redis` (async-native, no to_thread needed).
    - Serialization via pickle (cached responses hold raw bytes).
    - All keys live under ``namespace`` so ``clear()`` never flushes
      foreign data in a shared database.
    - Redis errors degrade to cache misses; they never fail a request.

    Args:
        url: Redis URL (e.g. `redis://localhost:6379/0`).
        ttl_seconds: Default TTL.
        max_concurrent: Max parallel Redis ops.
        namespace: Key prefix.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 3600,
        max_concurrent: int = 50,
        namespace: str = "vidrelay:",
    ) -> None:
        self.url = url
        self.default_ttl = ttl_seconds
        self.namespace = namespace
        self._client: Redis | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> RedisAdapter:
        """Initialize Redis client (connection pool) and PING it."""
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=False)
            try:
                await self._client.ping()
                log.info("redis_connected", url=self.url)
            except RedisError as e:
                log.error("redis_connection_failed", url=self.url, error=str(e))
                raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("redis_closed")

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Any | None:
        if self._client is None:
            raise RuntimeError("Redis not initialized. Use 'async with cache:'")

        async with self._semaphore:
            try:
                raw = await self._client.get(self._key(key))
            except RedisError as e:
                log.error("redis_get_error", key=key, error=str(e))
                return None
        if raw is None:
            log.debug("cache_miss", key=key)
            return None
        try:
            value = pickle.loads(raw)
        except pickle.PickleError as e:
            log.error("redis_unpickle_error", key=key, error=str(e))
            return None
        log.debug("cache_hit", key=key)
        return value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        if self._client is None:
            raise RuntimeError("Redis not initialized.")

        expire = ttl if ttl is not None else self.default_ttl
        if expire <= 0:
            return

        try:
            packed = pickle.dumps(value)
        except (pickle.PickleError, TypeError) as e:
            log.error("pickle_serialize_error", key=key, error=str(e))
            return

        async with self._semaphore:
            try:
                await self._client.setex(self._key(key), expire, packed)
            except RedisError as e:
                log.error("redis_set_error", key=key, error=str(e))
                return
        log.debug("cache_set", key=key, ttl=expire, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.delete(self._key(key)) > 0
            except RedisError as e:
                log.error("redis_delete_error", key=key, error=str(e))
                return False

    async def exists(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.exists(self._key(key)) > 0
            except RedisError as e:
                log.error("redis_exists_error", key=key, error=str(e))
                return False

    async def clear(self) -> None:
        """Delete every key under the namespace (SCAN, not FLUSHDB)."""
        if self._client is None:
            return
        async with self._semaphore:
            try:
                removed = 0
                async for raw_key in self._client.scan_iter(match=f"{self.namespace}*"):
                    removed += await self._client.delete(raw_key)
                log.warning("redis_namespace_cleared", namespace=self.namespace, removed=removed)
            except RedisError as e:
                log.error("redis_clear_error", error=str(e))
