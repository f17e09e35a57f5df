"""Ports for resolving third-party embed URLs to direct media URLs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from vidrelay.domain.entities.resolution import ResolutionResult


@runtime_checkable
class EmbedStrategyPort(Protocol):
    """Provider-specific extraction strategy.

    ``matches`` decides ownership of a URL from its host/path shape alone
    (no I/O). ``resolve`` fetches the embed page (plus any follow-up API
    call) and raises a ``ResolutionError`` subclass on failure.
    """

    @property
    def name(self) -> str:
        """Provider name (e.g. 'filemoon', 'doodstream')."""
        ...

    def matches(self, url: str) -> bool: ...

    async def resolve(self, url: str) -> ResolutionResult: ...


@runtime_checkable
class EmbedResolverPort(Protocol):
    """Turns an embed URL into a ``ResolutionResult`` or raises."""

    @property
    def supported_providers(self) -> list[str]: ...

    async def resolve(self, embed_url: str) -> ResolutionResult: ...
