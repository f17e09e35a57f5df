"""httpx-backed upstream file store (Google Drive files API by default)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from urllib.parse import quote

import httpx
import structlog

log = structlog.get_logger(__name__)

_CHUNK_SIZE = 65536


class HttpxUpstreamResponse:
    """Adapts a streaming ``httpx.Response`` to ``UpstreamResponse``."""

    def __init__(self, response: httpx.Response) -> None:
        self._resp = response
        self.status_code = response.status_code

    @property
    def is_success(self) -> bool:
        return self._resp.is_success

    def header_items(self) -> list[tuple[str, str]]:
        return list(self._resp.headers.multi_items())

    async def aiter_body(self) -> AsyncIterator[bytes]:
        # Raw bytes: the Content-Length/Content-Encoding we forward stay valid
        async for chunk in self._resp.aiter_raw(chunk_size=_CHUNK_SIZE):
            yield chunk

    async def aread_text(self) -> str:
        await self._resp.aread()
        return self._resp.text

    async def aclose(self) -> None:
        await self._resp.aclose()


class HttpUpstreamStore:
    """Opens ``url_template.format(file_id=..., api_key=...)`` as a stream.

    The client's ``Range`` header is forwarded unchanged. The URL embeds
    the API key, so it is never logged.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api_key: str | None,
        url_template: str,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._template = url_template

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def build_url(self, file_id: str) -> str:
        return self._template.format(
            file_id=quote(file_id, safe=""), api_key=quote(self._api_key or "", safe="")
        )

    async def open(
        self, file_id: str, *, range_header: str | None = None
    ) -> HttpxUpstreamResponse:
        headers = {"Accept-Encoding": "identity"}
        if range_header:
            headers["Range"] = range_header

        request = self._http.build_request("GET", self.build_url(file_id), headers=headers)
        response = await self._http.send(request, stream=True, follow_redirects=True)
        log.debug(
            "upstream_opened",
            file_id=file_id,
            status=response.status_code,
            ranged=range_header is not None,
        )
        return HttpxUpstreamResponse(response)
