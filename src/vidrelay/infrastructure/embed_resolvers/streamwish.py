"""Streamwish strategy (XFileSharingPro player with many domain aliases).

Current pages keep their sources in a ``links`` object inside packed
JavaScript, e.g. ``var links={"hls4":"/stream/...","hls2":"https://..."}``.
``hls2`` is the absolute CDN URL. Older pages expose a plain JWPlayer
``sources:[{file:"..."}]`` config.
"""

from __future__ import annotations

import structlog

from vidrelay.domain.entities.resolution import ResolutionResult

from ._base import EmbedStrategy
from ._extract import (
    find_json_value,
    find_jwplayer_source,
    find_media_url,
    iter_unpacked_blocks,
    validated_url,
)

log = structlog.get_logger(__name__)

_OFFLINE_MARKERS = (
    "File Not Found",
    "file was removed",
    ">The file expired",
    ">The file was deleted",
    "File is gone",
    "File unavailable",
    "This video has been locked watch or does not exist",
    "Video temporarily not available",
)


def _hls2(js: str) -> str | None:
    for value in find_json_value(js.replace('\\"', '"'), "hls2"):
        if isinstance(value, str):
            url = validated_url(value.replace("\\/", "/"))
            if url:
                return url
    return None


class StreamwishStrategy(EmbedStrategy):
    """Resolves streamwish / dwish / streamhg style embed pages."""

    provider = "streamwish"
    domains = frozenset(
        {
            "streamwish",
            "dwish",
            "playerwish",
            "rapidplayers",
            "streamhg",
            "hlsflex",
            "swiftplayers",
            "davioad",
            "hglink",
            "wishembed",
        }
    )

    async def extract(self, html: str, page_url: str) -> ResolutionResult | None:
        for marker in _OFFLINE_MARKERS:
            if marker in html:
                log.info("streamwish_file_offline", url=page_url, marker=marker)
                return None

        media_url = _hls2(html)
        if media_url is None:
            for unpacked in iter_unpacked_blocks(html):
                media_url = _hls2(unpacked) or find_jwplayer_source(unpacked)
                if media_url:
                    break
        if media_url is None:
            media_url = find_jwplayer_source(html) or find_media_url(html)

        if media_url:
            log.debug("streamwish_resolved", url=media_url[:80])
        return self._result(media_url, page_url)
