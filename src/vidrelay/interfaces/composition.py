"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from vidrelay.infrastructure.cache.cache_factory import create_cache
from vidrelay.infrastructure.config.schema import AppConfig
from vidrelay.infrastructure.edge_proxy import EdgeProxy, HttpUpstreamStore
from vidrelay.infrastructure.embed_resolvers import (
    CachingEmbedResolver,
    EmbedResolver,
    default_strategies,
)
from vidrelay.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Cache (shared by resolver and proxy)
        2. HTTP client (embed pages + upstream store)
        3. Embed resolver (strategies -> registry -> cache wrapper)
        4. Edge proxy (upstream store + cache)
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Cache
    cache = create_cache(
        backend=config.cache.backend,
        directory=str(config.cache.directory),
        redis_url=config.cache.redis_url,
        ttl_seconds=config.cache.ttl_seconds,
        max_concurrent=config.cache.max_concurrent,
        max_memory_bytes=config.cache.max_memory_bytes,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", backend=config.cache.backend)

    # 2) HTTP client
    state.http_client = build_http_client(config)
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    # 3) Embed resolver
    resolver = EmbedResolver(
        default_strategies(
            state.http_client, timeout=config.resolver.request_timeout_seconds
        )
    )
    state.embed_resolver = CachingEmbedResolver(
        resolver,
        cache,
        ttl_seconds=config.resolver.cache_ttl_seconds,
        single_flight=config.resolver.single_flight,
    )
    log.info(
        "embed_resolver_initialized",
        providers=resolver.supported_providers,
        single_flight=config.resolver.single_flight,
    )

    # 4) Edge proxy
    store = HttpUpstreamStore(
        state.http_client,
        api_key=config.proxy.upstream_api_key,
        url_template=config.proxy.upstream_url_template,
    )
    state.edge_proxy = EdgeProxy(store, cache, config.proxy)
    if not config.proxy.stream_token:
        log.warning("edge_stream_token_missing")
    if not store.is_configured:
        log.warning("edge_upstream_api_key_missing")
    log.info("edge_proxy_initialized")

    log.info("app_startup_complete")
    try:
        yield
    finally:
        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
