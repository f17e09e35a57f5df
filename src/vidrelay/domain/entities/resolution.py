"""Domain entities for embed URL resolution.

Pure value objects without framework dependencies or I/O.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal
from urllib.parse import urlparse

MediaType = Literal["hls", "mp4", "unknown"]


def is_absolute_http_url(value: str) -> bool:
    """True when *value* parses as an absolute ``http``/``https`` URL."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def infer_media_type(url: str, mime: str = "") -> MediaType:
    """Infer the media type from a URL suffix or MIME type.

    >>> infer_media_type("https://cdn.example.com/hls/master.m3u8?t=1")
    'hls'
    >>> infer_media_type("https://cdn.example.com/v.mp4")
    'mp4'
    """
    mime = mime.lower()
    path = urlparse(url).path.lower()
    if "mpegurl" in mime or path.endswith(".m3u8"):
        return "hls"
    if mime == "video/mp4" or path.endswith(".mp4"):
        return "mp4"
    # Some CDNs put the extension in the query only (e.g. ?file=x.m3u8)
    lowered = url.lower()
    if ".m3u8" in lowered:
        return "hls"
    if ".mp4" in lowered:
        return "mp4"
    return "unknown"


@dataclass(frozen=True)
class ResolutionRequest:
    """Input of a resolution: the opaque third-party embed URL."""

    embed_url: str

    @property
    def is_valid(self) -> bool:
        return is_absolute_http_url(self.embed_url)


@dataclass(frozen=True)
class ResolutionResult:
    """Direct playable media URL extracted from an embed page.

    Immutable once produced. ``headers`` holds request headers (usually
    ``Referer``) a player or proxy must replay for the CDN to accept the
    request.
    """

    url: str  # Absolute .m3u8 / .mp4 URL
    type: MediaType = "unknown"
    provider: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    resolved_at: float = field(default_factory=time.time)

    @property
    def is_hls(self) -> bool:
        return self.type == "hls"

    def to_dict(self) -> dict[str, object]:
        """JSON shape used by the resolve API (camelCase like the web app)."""
        return {
            "url": self.url,
            "type": self.type,
            "provider": self.provider,
            "headers": dict(self.headers),
            "resolvedAt": self.resolved_at,
        }
