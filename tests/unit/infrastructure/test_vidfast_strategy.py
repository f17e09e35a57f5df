"""Tests for VidfastStrategy and its obfuscation decoders."""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vidrelay.domain.exceptions import ExtractionFailed
from vidrelay.infrastructure.embed_resolvers._extract import rot13
from vidrelay.infrastructure.embed_resolvers.vidfast import (
    VidfastStrategy,
    decode_obfuscated_source,
)

_URL = "https://vidfast.pro/movie/533535"
_MEDIA = "https://cdn.example.com/hls/abc/master.m3u8?sig=1"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


def _client(text: str) -> AsyncMock:
    resp = MagicMock()
    resp.status_code = 200
    resp.text = text
    resp.url = _URL
    client = AsyncMock(spec=httpx.AsyncClient)
    client.get = AsyncMock(return_value=resp)
    return client


class TestDecodeObfuscatedSource:
    def test_plain_atob(self) -> None:
        js = f'var s = atob("{_b64(_MEDIA)}");'
        assert decode_obfuscated_source(js) == _MEDIA

    def test_reversed_atob(self) -> None:
        js = f"var s = atob('{_b64(_MEDIA)[::-1]}'.split('').reverse().join(''));"
        assert decode_obfuscated_source(js) == _MEDIA

    def test_rot13_atob(self) -> None:
        js = f'var s = atob(rot13("{rot13(_b64(_MEDIA))}"));'
        assert decode_obfuscated_source(js) == _MEDIA

    def test_decoded_non_url_rejected(self) -> None:
        js = f'var s = atob("{_b64("just some text")}");'
        assert decode_obfuscated_source(js) is None


class TestVidfastStrategy:
    def test_matches(self) -> None:
        strategy = VidfastStrategy(MagicMock())
        assert strategy.matches("https://vidfast.pro/movie/1")
        assert strategy.matches("https://embed.vidfast.net/tv/1/1/1")
        assert not strategy.matches("https://dood.re/e/abc")

    @pytest.mark.asyncio
    async def test_json_blob_in_script(self) -> None:
        page = (
            "<html><script>window.__PLAYER__ = "
            '{"title": "Movie", "tracks": [], "sources": [{"label": "auto", '
            f'"file": "{_MEDIA}"}}], "poster": "https://img.example.com/p.jpg"}};'
            "</script></html>"
        )
        result = await VidfastStrategy(_client(page)).resolve(_URL)
        assert result.url == _MEDIA
        assert result.type == "hls"
        assert result.provider == "vidfast"
        assert result.headers == {"Referer": _URL}

    @pytest.mark.asyncio
    async def test_stable_key_string(self) -> None:
        page = f'<script>var cfg = {{"autoplay": true, "hls": "{_MEDIA}"}};</script>'
        result = await VidfastStrategy(_client(page)).resolve(_URL)
        assert result.url == _MEDIA

    @pytest.mark.asyncio
    async def test_reversed_base64_source(self) -> None:
        page = (
            "<script>player.load(atob('"
            f"{_b64(_MEDIA)[::-1]}'.split('').reverse().join('')));</script>"
        )
        result = await VidfastStrategy(_client(page)).resolve(_URL)
        assert result.url == _MEDIA

    @pytest.mark.asyncio
    async def test_jwplayer_fallback(self) -> None:
        page = '<script>jwplayer().setup({file: "https://cdn.example.com/v.mp4"});</script>'
        result = await VidfastStrategy(_client(page)).resolve(_URL)
        assert result.url == "https://cdn.example.com/v.mp4"

    @pytest.mark.asyncio
    async def test_bare_source_tag_fallback(self) -> None:
        page = (
            '<video><source src="https://cdn.example.com/x/master.m3u8" '
            'type="application/x-mpegURL"></video>'
        )
        result = await VidfastStrategy(_client(page)).resolve(_URL)
        assert result.url == "https://cdn.example.com/x/master.m3u8"
        assert result.type == "hls"

    @pytest.mark.asyncio
    async def test_undecodable_page(self) -> None:
        page = '<script>var s = atob("aGVsbG8=");</script>'
        with pytest.raises(ExtractionFailed):
            await VidfastStrategy(_client(page)).resolve(_URL)
