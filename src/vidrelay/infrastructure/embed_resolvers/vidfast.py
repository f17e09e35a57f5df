"""Vidfast strategy.

Vidfast pages carry the player source in one of three shapes, checked
in this order:

1. A JSON blob inside a ``<script>`` tag with a stable source key
   (``"file"``, ``"source"``, ``"hls"``, ``"src"``, ``"url"``).
2. An obfuscated string decoded at runtime, either ``atob("...")`` or
   ``atob("...".split("").reverse().join(""))``. Some builds ROT13 the
   base64 text first (``atob(rot13("..."))``).
3. Packed JavaScript or a plain JWPlayer config.
"""

from __future__ import annotations

import re

import structlog

from vidrelay.domain.entities.resolution import ResolutionResult

from ._base import EmbedStrategy
from ._extract import (
    b64decode_text,
    find_json_value,
    find_jwplayer_source,
    find_media_in_json,
    find_media_url,
    iter_script_texts,
    iter_unpacked_blocks,
    rot13,
    validated_url,
)

log = structlog.get_logger(__name__)

_SOURCE_KEYS = ("file", "source", "hls", "src", "url")

_ATOB_REVERSED_RE = re.compile(
    r"""atob\(\s*["']([A-Za-z0-9+/=_-]+)["']\s*\.split\(\s*["']{2}\s*\)"""
    r"""\s*\.reverse\(\s*\)\s*\.join\(\s*["']{2}\s*\)\s*\)"""
)
_ATOB_ROT13_RE = re.compile(r"""atob\(\s*rot13\(\s*["']([A-Za-z0-9+/=_-]+)["']\s*\)\s*\)""")
_ATOB_RE = re.compile(r"""atob\(\s*["']([A-Za-z0-9+/=_-]+)["']\s*\)""")


def decode_obfuscated_source(js: str) -> str | None:
    """Apply the exact inverse of each known encoding.

    A candidate only counts when the decoded text is an absolute
    http(s) URL.
    """
    for m in _ATOB_REVERSED_RE.finditer(js):
        url = validated_url(b64decode_text(m.group(1)[::-1]))
        if url:
            return url
    for m in _ATOB_ROT13_RE.finditer(js):
        url = validated_url(b64decode_text(rot13(m.group(1))))
        if url:
            return url
    for m in _ATOB_RE.finditer(js):
        url = validated_url(b64decode_text(m.group(1)))
        if url:
            return url
    return None


class VidfastStrategy(EmbedStrategy):
    """Resolves vidfast.* embed pages."""

    provider = "vidfast"
    domains = frozenset({"vidfast"})

    async def extract(self, html: str, page_url: str) -> ResolutionResult | None:
        scripts = list(iter_script_texts(html))

        for text in scripts:
            media_url = self._from_json(text)
            if media_url:
                log.debug("vidfast_json_source", url=media_url[:80])
                return self._result(media_url, page_url)

        for text in scripts:
            media_url = decode_obfuscated_source(text)
            if media_url:
                log.debug("vidfast_obfuscated_source", url=media_url[:80])
                return self._result(media_url, page_url)

        for unpacked in iter_unpacked_blocks(html):
            media_url = find_jwplayer_source(unpacked) or find_media_url(unpacked)
            if media_url:
                log.debug("vidfast_packed_source", url=media_url[:80])
                return self._result(media_url, page_url)

        return self._result(find_jwplayer_source(html) or find_media_url(html), page_url)

    @staticmethod
    def _from_json(text: str) -> str | None:
        for key in ("sources", "playlist"):
            for value in find_json_value(text, key):
                found = find_media_in_json(value, _SOURCE_KEYS)
                if found:
                    return found
        for key in _SOURCE_KEYS:
            for value in find_json_value(text, key):
                if isinstance(value, str):
                    url = validated_url(value)
                    if url and (".m3u8" in url or ".mp4" in url):
                        return url
        return None
