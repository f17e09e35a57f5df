"""In-memory cache adapter - process-local, valid for the lifetime of one instance."""

from __future__ import annotations

import sys
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

import structlog

from vidrelay.domain.entities.streaming import CacheEntry

log = structlog.get_logger(__name__)

# Sweep expired entries every N writes
_SWEEP_INTERVAL = 512


def _approx_size(value: Any) -> int:
    """Payload bytes of *value*; cached responses count body plus headers."""
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    body = getattr(value, "body", None)
    if isinstance(body, (bytes, bytearray)):
        headers = getattr(value, "headers", ())
        return len(body) + sum(len(k) + len(v) for k, v in headers)
    return sys.getsizeof(value)


class MemoryCacheAdapter:
    """Dict-backed cache storing ``CacheEntry`` objects.

    Expiry is checked by the reader on every lookup; expired entries are
    treated as absent and dropped. A lazy sweep every ``_SWEEP_INTERVAL``
    writes keeps abandoned entries from piling up. When ``max_bytes`` is
    set, least recently used entries are evicted until the total fits, and
    a single value larger than the budget is not stored.
    Not shared across horizontally scaled instances.

    Args:
        ttl_seconds: Default TTL for ``set()`` without explicit value.
        clock: Time source (seconds), injectable for tests.
        max_bytes: Approximate memory budget; ``None`` disables eviction.
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
        max_bytes: int | None = 128 * 1024 * 1024,
    ) -> None:
        self.default_ttl = ttl_seconds
        self.max_bytes = max_bytes
        self._clock = clock
        self._entries: OrderedDict[str, tuple[CacheEntry[Any], int, int]] = OrderedDict()
        self._bytes = 0
        self._writes = 0

    async def __aenter__(self) -> MemoryCacheAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._entries.clear()
        self._bytes = 0

    def _live_entry(self, key: str) -> CacheEntry[Any] | None:
        item = self._entries.get(key)
        if item is None:
            return None
        entry, ttl, _ = item
        if entry.is_expired(ttl, now=self._clock()):
            self._drop(key)
            return None
        self._entries.move_to_end(key)
        return entry

    async def get(self, key: str) -> Any | None:
        entry = self._live_entry(key)
        log.debug("cache_get", key=key, hit=entry is not None)
        return entry.data if entry is not None else None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        expire = ttl if ttl is not None else self.default_ttl
        if expire <= 0:
            return
        size = _approx_size(value)
        self._drop(key)
        if self.max_bytes is not None and size > self.max_bytes:
            log.info("cache_entry_too_large", key=key, size=size, max_bytes=self.max_bytes)
            return

        self._entries[key] = (CacheEntry(data=value, timestamp=self._clock()), expire, size)
        self._bytes += size
        log.debug("cache_set", key=key, ttl=expire, size=size)

        self._writes += 1
        if self._writes % _SWEEP_INTERVAL == 0:
            self._sweep()
        self._evict()

    async def delete(self, key: str) -> bool:
        return self._drop(key)

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def clear(self) -> None:
        self._entries.clear()
        self._bytes = 0
        log.warning("cache_cleared", backend="memory")

    @property
    def size_bytes(self) -> int:
        """Approximate bytes held by live and not yet swept entries."""
        return self._bytes

    def _drop(self, key: str) -> bool:
        item = self._entries.pop(key, None)
        if item is None:
            return False
        self._bytes -= item[2]
        return True

    def _evict(self) -> None:
        if self.max_bytes is None or self._bytes <= self.max_bytes:
            return
        self._sweep()
        evicted = 0
        while self._bytes > self.max_bytes and self._entries:
            oldest = next(iter(self._entries))
            self._drop(oldest)
            evicted += 1
        if evicted:
            log.debug("cache_evicted", evicted=evicted, size_bytes=self._bytes)

    def _sweep(self) -> None:
        now = self._clock()
        expired = [k for k, (e, ttl, _) in self._entries.items() if e.is_expired(ttl, now=now)]
        for k in expired:
            self._drop(k)
        log.debug("cache_sweep", removed=len(expired), size=len(self._entries))
