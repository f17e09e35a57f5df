"""Common plumbing for provider strategies (host matching, page fetch)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from urllib.parse import urlparse

import httpx
import structlog

from vidrelay.domain.entities.resolution import (
    ResolutionResult,
    infer_media_type,
    is_absolute_http_url,
)
from vidrelay.domain.exceptions import ExtractionFailed, FetchFailed

log = structlog.get_logger(__name__)

_BROWSER_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}


def host_labels(url: str) -> set[str]:
    """Hostname labels without the TLD (``www.dood.re`` -> {www, dood})."""
    hostname = (urlparse(url).hostname or "").lower()
    labels = hostname.split(".")
    if len(labels) > 1:
        labels = labels[:-1]
    return {label for label in labels if label}


class EmbedStrategy(ABC):
    """Base class for one provider family.

    Subclasses set ``provider`` and ``domains`` and implement ``extract``.
    ``resolve`` fetches the embed page and turns a ``None`` extraction
    into ``ExtractionFailed``.
    """

    provider: str = ""
    domains: frozenset[str] = frozenset()

    def __init__(self, http_client: httpx.AsyncClient, *, timeout: float = 15.0) -> None:
        self._http = http_client
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self.provider

    def matches(self, url: str) -> bool:
        return bool(host_labels(url) & self.domains)

    async def resolve(self, url: str) -> ResolutionResult:
        page_url = self.normalize_url(url)
        html, final_url = await self._fetch_page(page_url, referer=url)

        result = await self.extract(html, final_url)
        if result is None:
            log.warning("embed_extraction_failed", provider=self.provider, url=url)
            raise ExtractionFailed(
                f"{self.provider}: no media URL found in embed page",
                embed_url=url,
            )
        return result

    def normalize_url(self, url: str) -> str:
        return url

    @abstractmethod
    async def extract(self, html: str, page_url: str) -> ResolutionResult | None:
        """Pull the direct media URL out of a fetched embed page."""

    async def _fetch_page(
        self,
        url: str,
        *,
        referer: str,
        extra_headers: dict[str, str] | None = None,
    ) -> tuple[str, str]:
        """GET *url* with browser headers. Returns (body, final URL)."""
        headers = {**_BROWSER_HEADERS, "Referer": referer}
        if extra_headers:
            headers.update(extra_headers)
        try:
            resp = await self._http.get(
                url,
                headers=headers,
                follow_redirects=True,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            log.warning("embed_fetch_timeout", provider=self.provider, url=url)
            raise FetchFailed(f"Timed out fetching {url}", embed_url=referer) from exc
        except httpx.HTTPError as exc:
            log.warning(
                "embed_fetch_failed",
                provider=self.provider,
                url=url,
                error=str(exc),
            )
            raise FetchFailed(f"Request to {url} failed: {exc}", embed_url=referer) from exc

        if not 200 <= resp.status_code < 300:
            log.warning(
                "embed_fetch_http_error",
                provider=self.provider,
                url=url,
                status=resp.status_code,
            )
            raise FetchFailed(
                f"{url} answered HTTP {resp.status_code}",
                embed_url=referer,
                status_code=resp.status_code,
            )
        return resp.text, str(resp.url)

    def _result(
        self,
        media_url: str | None,
        page_url: str,
        *,
        mime: str = "",
        referer: bool = True,
    ) -> ResolutionResult | None:
        if media_url is None or not is_absolute_http_url(media_url):
            return None
        return ResolutionResult(
            url=media_url,
            type=infer_media_type(media_url, mime),
            provider=self.provider,
            headers={"Referer": page_url} if referer else {},
        )
