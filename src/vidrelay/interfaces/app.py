"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from vidrelay.infrastructure.config import AppConfig
from vidrelay.interfaces.app_state import AppState
from vidrelay.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app: configuration only, no resource initialization.

    Resources (HTTP client, cache, resolver, proxy) are created in lifespan().
    """
    app = FastAPI(
        title="vidrelay",
        description="Embed URL resolver and streaming edge proxy",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from vidrelay.interfaces.api.edge.router import router as edge_router
    from vidrelay.interfaces.api.resolver.router import router as resolver_router

    app.include_router(resolver_router, prefix="/api/v1")

    @app.get("/api/v1/healthz")
    async def healthz() -> dict[str, str | list[str]]:
        """Liveness check: returns 200 as long as the process is running."""
        resolver = getattr(app.state, "embed_resolver", None)
        return {
            "status": "ok",
            "providers": resolver.supported_providers if resolver else [],
        }

    # Catch-all: must stay the last route
    app.include_router(edge_router)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            # No query string: proxy links carry the stream token
            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
