"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from vidrelay.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from vidrelay.domain.ports import CachePort
    from vidrelay.infrastructure.edge_proxy import EdgeProxy
    from vidrelay.infrastructure.embed_resolvers import CachingEmbedResolver


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient

    # Embed resolution (strategies + cache wrapper)
    embed_resolver: CachingEmbedResolver

    # Streaming edge proxy
    edge_proxy: EdgeProxy
