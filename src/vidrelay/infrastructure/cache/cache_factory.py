"""Cache factory - builds the adapter selected in config."""

from __future__ import annotations

import structlog

from vidrelay.domain.ports.cache import CachePort
from vidrelay.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from vidrelay.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from vidrelay.infrastructure.cache.redis_adapter import RedisAdapter
from vidrelay.infrastructure.config.schema import CacheBackendName

log = structlog.get_logger(__name__)


def create_cache(
    backend: CacheBackendName = "memory",
    *,
    directory: str = "./.cache/vidrelay",
    redis_url: str = "redis://localhost:6379/0",
    ttl_seconds: int = 3600,
    max_concurrent: int = 10,
    max_memory_bytes: int | None = None,
) -> CachePort:
    """Create the cache adapter for *backend*.

    Args:
        backend: "memory", "diskcache" (SQLite) or "redis".
        directory: Diskcache path.
        redis_url: Redis connection string.
        ttl_seconds: Default TTL for all backends.
        max_concurrent: Semaphore limit (diskcache; Redis uses at least 50).
        max_memory_bytes: Memory backend budget (adapter default when None).

    Raises:
        ValueError: If `backend` is unknown.
    """
    log.info("cache_factory_create", backend=backend, ttl=ttl_seconds)
    if backend == "memory":
        if max_memory_bytes is None:
            return MemoryCacheAdapter(ttl_seconds=ttl_seconds)
        return MemoryCacheAdapter(ttl_seconds=ttl_seconds, max_bytes=max_memory_bytes)
    if backend == "diskcache":
        return DiskcacheAdapter(
            directory=directory,
            ttl_seconds=ttl_seconds,
            max_concurrent=max_concurrent,
        )
    if backend == "redis":
        return RedisAdapter(
            url=redis_url,
            ttl_seconds=ttl_seconds,
            max_concurrent=max(max_concurrent, 50),
        )
    raise ValueError(
        f"Unknown cache backend: {backend!r}. Must be 'memory', 'diskcache' or 'redis'."
    )
