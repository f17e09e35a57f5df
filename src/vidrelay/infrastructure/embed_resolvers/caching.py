"""Cache + single-flight wrapper around an ``EmbedResolverPort``."""

from __future__ import annotations

import asyncio

import structlog

from vidrelay.domain.entities.resolution import ResolutionResult
from vidrelay.domain.ports.cache import CachePort
from vidrelay.domain.ports.embed_resolver import EmbedResolverPort

log = structlog.get_logger(__name__)


class CachingEmbedResolver:
    """Serves repeat resolutions of the same embed URL from cache.

    Only successful results are stored. With ``single_flight`` enabled,
    concurrent misses for one URL await one shared task instead of each
    fetching the embed page.
    """

    def __init__(
        self,
        resolver: EmbedResolverPort,
        cache: CachePort,
        *,
        ttl_seconds: int = 3600,
        single_flight: bool = True,
    ) -> None:
        self._resolver = resolver
        self._cache = cache
        self._ttl = ttl_seconds
        self._single_flight = single_flight
        self._in_flight: dict[str, asyncio.Task[ResolutionResult]] = {}

    @property
    def supported_providers(self) -> list[str]:
        return self._resolver.supported_providers

    @staticmethod
    def cache_key(embed_url: str) -> str:
        return f"resolve:{embed_url}"

    async def resolve(self, embed_url: str) -> ResolutionResult:
        result, _ = await self.resolve_with_cache_info(embed_url)
        return result

    async def resolve_with_cache_info(self, embed_url: str) -> tuple[ResolutionResult, bool]:
        """Resolve *embed_url*. Returns ``(result, served_from_cache)``."""
        key = self.cache_key(embed_url)
        cached = await self._cache.get(key)
        if isinstance(cached, ResolutionResult):
            log.debug("embed_resolve_cache_hit", url=embed_url)
            return cached, True

        if not self._single_flight:
            return await self._resolve_and_store(key, embed_url), False

        task = self._in_flight.get(key)
        if task is None or task.done():
            # Detached so that one caller's cancellation never reaches the others
            task = asyncio.ensure_future(self._resolve_and_store(key, embed_url))
            task.add_done_callback(lambda t, key=key: self._forget(key, t))
            self._in_flight[key] = task
        else:
            log.debug("embed_resolve_joined_in_flight", url=embed_url)
        return await asyncio.shield(task), False

    def _forget(self, key: str, task: asyncio.Task[ResolutionResult]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Callers re-raise it; mark retrieved for the no-caller case
            task.exception()

    async def _resolve_and_store(self, key: str, embed_url: str) -> ResolutionResult:
        result = await self._resolver.resolve(embed_url)
        await self._cache.set(key, result, ttl=self._ttl)
        return result
