"""Filemoon strategy.

Two page generations are in the wild:

1. Byse SPA: a React frontend that loads its sources from
   ``GET /api/videos/{id}/embed/details`` (JSON).
2. Legacy XFS: Dean Edwards packed JavaScript holding a JWPlayer config.

The API is tried first; the HTML path runs when it yields nothing.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

from vidrelay.domain.entities.resolution import ResolutionResult

from ._base import EmbedStrategy
from ._extract import find_jwplayer_source, find_media_url, iter_unpacked_blocks

log = structlog.get_logger(__name__)

_VIDEO_ID_RE = re.compile(r"/(?:e|d|download)/([a-zA-Z0-9]+)")


class FilemoonStrategy(EmbedStrategy):
    """Resolves filemoon.* embed pages to HLS URLs."""

    provider = "filemoon"
    domains = frozenset({"filemoon", "moonplayer", "kerapoxy", "byse"})

    def normalize_url(self, url: str) -> str:
        if "/e/" in url:
            return url
        return re.sub(r"/(?:d|download)/", "/e/", url, count=1)

    async def resolve(self, url: str) -> ResolutionResult:
        embed_url = self.normalize_url(url)
        result = await self._try_details_api(embed_url)
        if result is not None:
            return result
        return await super().resolve(url)

    async def extract(self, html: str, page_url: str) -> ResolutionResult | None:
        if self._is_offline(html):
            log.info("filemoon_offline", url=page_url)
            return None

        for unpacked in iter_unpacked_blocks(html):
            media_url = find_jwplayer_source(unpacked)
            if media_url:
                log.debug("filemoon_packed_js_success", url=media_url[:80])
                return self._result(media_url, page_url)

        media_url = find_media_url(html)
        if media_url and ".m3u8" in media_url:
            log.debug("filemoon_direct_hls", url=media_url[:80])
            return self._result(media_url, page_url)
        return None

    async def _try_details_api(self, embed_url: str) -> ResolutionResult | None:
        match = _VIDEO_ID_RE.search(urlparse(embed_url).path)
        if not match:
            return None
        parsed = urlparse(embed_url)
        api_url = f"{parsed.scheme}://{parsed.netloc}/api/videos/{match.group(1)}/embed/details"

        try:
            resp = await self._http.get(
                api_url,
                headers={"Referer": embed_url, "Accept": "application/json"},
                follow_redirects=True,
                timeout=self._timeout,
            )
        except httpx.HTTPError:
            log.debug("filemoon_details_api_failed", url=api_url)
            return None
        if resp.status_code != 200:
            log.debug("filemoon_details_api_not_ok", status=resp.status_code)
            return None

        try:
            data = resp.json()
        except ValueError:
            log.debug("filemoon_details_api_not_json", url=api_url)
            return None
        return self._parse_sources(data, embed_url)

    def _parse_sources(self, data: Any, embed_url: str) -> ResolutionResult | None:
        if not isinstance(data, dict):
            return None
        sources = data.get("sources")
        if not isinstance(sources, list):
            inner = data.get("data")
            sources = inner.get("sources") if isinstance(inner, dict) else None
            if not isinstance(sources, list):
                return None

        for source in sources:
            if not isinstance(source, dict):
                continue
            media_url = source.get("url") or source.get("file") or ""
            if not isinstance(media_url, str) or not media_url.startswith("http"):
                continue
            mime = str(source.get("mimeType") or source.get("type") or "")
            log.debug("filemoon_details_api_success", url=media_url[:80])
            return self._result(media_url, embed_url, mime=mime)
        return None

    @staticmethod
    def _is_offline(html: str) -> bool:
        return (
            "File Not Found" in html
            or "file was deleted" in html.lower()
            or 'class="fake-signup"' in html
        )
