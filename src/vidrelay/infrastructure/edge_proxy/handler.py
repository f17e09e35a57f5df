"""Streaming edge proxy: authenticated, cached, range-aware relay.

Request flow::

    OPTIONS -> 204
    method not GET/HEAD -> 405
    token / exp check -> 403
    "/" or "/favicon.ico" -> 200 "OK"
    /subtitles/<name> -> subtitle (buffered, SRT converted to WebVTT)
    /<name> -> video (streamed, full loads cached after completion)
    anything else -> 400

Every response carries the CORS headers.
"""

from __future__ import annotations

import hmac
import math
import re
import time
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import structlog
from starlette.background import BackgroundTask
from starlette.responses import PlainTextResponse, Response, StreamingResponse

from vidrelay.domain.entities.streaming import (
    CachedResponse,
    ResourceRoute,
    StreamingRequest,
)
from vidrelay.domain.ports.cache import CachePort
from vidrelay.domain.ports.upstream_store import UpstreamResponse, UpstreamStorePort
from vidrelay.infrastructure.config.schema import ProxyConfig

from .policy import (
    CORS_HEADERS,
    rewrite_video_headers,
    ttl_for_status,
    upstream_outcome_key,
    video_cache_key,
    with_cors,
)
from .subtitles import srt_to_vtt

log = structlog.get_logger(__name__)

_SUBTITLE_PATH_RE = re.compile(r"^/subtitles/([^/]+)$")
_VIDEO_PATH_RE = re.compile(r"^/([^/]+)$")


def _text(body: str, status_code: int = 200) -> PlainTextResponse:
    return PlainTextResponse(body, status_code=status_code, headers=CORS_HEADERS)


def parse_route(pathname: str) -> ResourceRoute | None:
    """Classify a request path, or None for an unsupported shape."""
    if pathname.startswith("/subtitles/"):
        m = _SUBTITLE_PATH_RE.match(pathname)
        return ResourceRoute("subtitle", m.group(1)) if m else None
    m = _VIDEO_PATH_RE.match(pathname)
    return ResourceRoute("video", m.group(1)) if m else None


def parse_expiry(raw: str | None) -> float | None:
    """Unix seconds from the ``exp`` parameter; None if absent or invalid."""
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value) or value == 0:
        return None
    return value


class _BodyTee:
    """Copies streamed chunks into memory until a size limit is crossed."""

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._chunks: list[bytes] = []
        self._size = 0
        self.overflowed = False
        self.completed = False

    def feed(self, chunk: bytes) -> None:
        if self.overflowed:
            return
        self._size += len(chunk)
        if self._size > self._limit:
            self.overflowed = True
            self._chunks.clear()
            return
        self._chunks.append(chunk)

    @property
    def body(self) -> bytes | None:
        if not self.completed or self.overflowed:
            return None
        return b"".join(self._chunks)


class EdgeProxy:
    """Per-request state machine in front of an ``UpstreamStorePort``."""

    def __init__(
        self,
        store: UpstreamStorePort,
        cache: CachePort,
        config: ProxyConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._cache = cache
        self._config = config
        self._clock = clock

    async def handle(self, request: StreamingRequest) -> Response:
        try:
            return await self._dispatch(request)
        except Exception as exc:
            log.exception(
                "edge_worker_error",
                method=request.method,
                path=request.pathname,
                error_type=type(exc).__name__,
            )
            if self._config.expose_error_details:
                return _text(f"Worker error: {exc}", 500)
            return _text("Internal error", 500)

    async def _dispatch(self, request: StreamingRequest) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)
        if request.method not in ("GET", "HEAD"):
            return _text("Method Not Allowed", 405)

        denied = self._authorize(request)
        if denied is not None:
            return denied

        if request.is_liveness_probe:
            return _text("OK")

        route = parse_route(request.pathname)
        if route is None:
            return _text("Invalid URL", 400)
        if not self._store.is_configured:
            log.error("edge_upstream_not_configured")
            return _text("Missing UPSTREAM_API_KEY configuration", 500)

        if route.kind == "subtitle":
            return await self._serve_subtitle(request, route)
        return await self._serve_video(request, route)

    def _authorize(self, request: StreamingRequest) -> Response | None:
        secret = self._config.stream_token
        token = request.token
        if (
            not secret
            or not token
            or not hmac.compare_digest(token.encode(), secret.encode())
        ):
            log.info("edge_auth_invalid_token", path=request.pathname)
            return _text("Invalid token", 403)

        exp = parse_expiry(request.exp)
        if exp is None or self._clock() > exp:
            log.info("edge_auth_link_expired", path=request.pathname)
            return _text("Link expired", 403)
        return None

    # -- subtitles ---------------------------------------------------------

    async def _serve_subtitle(
        self, request: StreamingRequest, route: ResourceRoute
    ) -> Response:
        cache_key = request.url
        cached = await self._cache.get(cache_key)
        if isinstance(cached, CachedResponse):
            log.debug("edge_subtitle_cache_hit", file_id=route.file_id)
            return self._from_cache(cached, request.method)

        upstream = await self._open_upstream(route.file_id, None)
        if upstream is None or isinstance(upstream, int):
            return _text("Subtitle unavailable", 404 if upstream is not None else 502)
        try:
            if not upstream.is_success:
                await self._remember_failure(route.file_id, None, upstream.status_code)
                log.info(
                    "edge_subtitle_unavailable",
                    file_id=route.file_id,
                    status=upstream.status_code,
                )
                return _text("Subtitle unavailable", 404)
            text = await upstream.aread_text()
        finally:
            await upstream.aclose()

        if route.is_srt:
            text = srt_to_vtt(text)
        body = text.encode("utf-8")
        headers = with_cors(
            [
                ("content-type", "text/vtt; charset=utf-8"),
                ("cache-control", f"public, max-age={self._config.subtitle_ttl_seconds}"),
            ]
        )
        entry = CachedResponse(200, list(headers.items()), body)
        task = BackgroundTask(
            self._store_in_cache, cache_key, entry, self._config.subtitle_ttl_seconds
        )
        log.info("edge_subtitle_served", file_id=route.file_id, converted=route.is_srt)
        return self._buffered(200, headers, body, request.method, background=task)

    # -- video -------------------------------------------------------------

    async def _serve_video(self, request: StreamingRequest, route: ResourceRoute) -> Response:
        range_header = request.range
        cache_key = video_cache_key(request.origin, request.pathname, range_header)

        if not range_header:
            cached = await self._cache.get(cache_key)
            if isinstance(cached, CachedResponse):
                log.info("edge_video_cache_hit", file_id=route.file_id)
                return self._from_cache(cached, request.method)

        upstream = await self._open_upstream(route.file_id, range_header)
        if upstream is None:
            return _text("Video unavailable", 502)
        if isinstance(upstream, int):
            return _text("Video unavailable", upstream)

        if not upstream.is_success:
            status = upstream.status_code
            await upstream.aclose()
            await self._remember_failure(route.file_id, range_header, status)
            log.warning("edge_video_unavailable", file_id=route.file_id, status=status)
            return _text("Video unavailable", status)

        headers = rewrite_video_headers(
            upstream.header_items(),
            ranged=range_header is not None,
            full_ttl=self._config.video_full_ttl_seconds,
            range_ttl=self._config.video_range_ttl_seconds,
        )

        if request.method == "HEAD":
            await upstream.aclose()
            return Response(status_code=upstream.status_code, headers=headers)

        store_ttl = ttl_for_status(upstream.status_code, self._config.upstream_ttl_by_status)
        tee: _BodyTee | None = None
        if not range_header and upstream.status_code == 200 and store_ttl > 0:
            declared = headers.get("content-length", "")
            if not declared.isdigit() or int(declared) <= self._config.max_cached_body_bytes:
                tee = _BodyTee(self._config.max_cached_body_bytes)

        log.info(
            "edge_video_stream",
            file_id=route.file_id,
            status=upstream.status_code,
            ranged=range_header is not None,
            caching=tee is not None,
        )
        background = None
        if tee is not None:
            background = BackgroundTask(
                self._store_streamed, cache_key, upstream.status_code, headers, tee, store_ttl
            )
        return StreamingResponse(
            self._relay(upstream, tee),
            status_code=upstream.status_code,
            headers=headers,
            background=background,
        )

    async def _relay(
        self, upstream: UpstreamResponse, tee: _BodyTee | None
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.aiter_body():
                if tee is not None:
                    tee.feed(chunk)
                yield chunk
            if tee is not None:
                tee.completed = True
        finally:
            await upstream.aclose()

    async def _store_streamed(
        self,
        cache_key: str,
        status_code: int,
        headers: dict[str, str],
        tee: _BodyTee,
        ttl: int,
    ) -> None:
        body = tee.body
        if body is None:
            log.debug("edge_video_not_cached", overflowed=tee.overflowed)
            return
        await self._store_in_cache(
            cache_key, CachedResponse(status_code, list(headers.items()), body), ttl
        )

    # -- shared ------------------------------------------------------------

    async def _open_upstream(
        self, file_id: str, range_header: str | None
    ) -> UpstreamResponse | int | None:
        """Open the upstream stream.

        Returns a remembered failure status (int) when a recent identical
        request failed, or None when the fetch itself raised.
        """
        remembered = await self._cache.get(upstream_outcome_key(file_id, range_header))
        if isinstance(remembered, int):
            log.debug("edge_upstream_outcome_cached", file_id=file_id, status=remembered)
            return remembered
        try:
            return await self._store.open(file_id, range_header=range_header)
        except httpx.HTTPError as exc:
            log.warning(
                "edge_upstream_fetch_failed",
                file_id=file_id,
                error_type=type(exc).__name__,
            )
            return None

    async def _remember_failure(
        self, file_id: str, range_header: str | None, status_code: int
    ) -> None:
        ttl = ttl_for_status(status_code, self._config.upstream_ttl_by_status)
        if ttl > 0:
            await self._cache.set(
                upstream_outcome_key(file_id, range_header), status_code, ttl=ttl
            )

    async def _store_in_cache(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._cache.set(key, value, ttl=ttl)
        except Exception as exc:  # noqa: BLE001
            log.warning("edge_cache_store_failed", error_type=type(exc).__name__)
            return
        log.debug("edge_cache_stored", size=len(value.body), ttl=ttl)

    def _from_cache(self, cached: CachedResponse, method: str) -> Response:
        return self._buffered(
            cached.status_code, with_cors(cached.headers), cached.body, method
        )

    @staticmethod
    def _buffered(
        status_code: int,
        headers: dict[str, str],
        body: bytes,
        method: str,
        *,
        background: BackgroundTask | None = None,
    ) -> Response:
        headers = {**headers, "content-length": str(len(body))}
        content = b"" if method == "HEAD" else body
        return Response(
            content=content,
            status_code=status_code,
            headers=headers,
            background=background,
        )
