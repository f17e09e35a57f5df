from __future__ import annotations

from .handler import EdgeProxy, parse_expiry, parse_route
from .policy import CORS_HEADERS, rewrite_video_headers, ttl_for_status, video_cache_key
from .subtitles import srt_to_vtt
from .upstream import HttpUpstreamStore, HttpxUpstreamResponse

__all__ = [
    "CORS_HEADERS",
    "EdgeProxy",
    "HttpUpstreamStore",
    "HttpxUpstreamResponse",
    "parse_expiry",
    "parse_route",
    "rewrite_video_headers",
    "srt_to_vtt",
    "ttl_for_status",
    "video_cache_key",
]
