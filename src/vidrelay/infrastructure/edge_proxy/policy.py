"""Header rewriting, cache keys and TTL policy for the edge proxy."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "Range, Content-Type",
    "Access-Control-Expose-Headers": "Content-Range, Accept-Ranges, Content-Length",
}

# RFC 9110 connection-specific headers plus upstream cookies
_DROPPED_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "set-cookie",
    }
)


def with_cors(headers: Iterable[tuple[str, str]] = ()) -> dict[str, str]:
    """Lower-cased header dict with the CORS headers set (overriding)."""
    merged = {name.lower(): value for name, value in headers}
    merged.update({name.lower(): value for name, value in CORS_HEADERS.items()})
    return merged


def rewrite_video_headers(
    upstream_headers: Iterable[tuple[str, str]],
    *,
    ranged: bool,
    full_ttl: int,
    range_ttl: int,
) -> dict[str, str]:
    """Turn upstream media headers into the headers sent to the player."""
    kept = [
        (name, value)
        for name, value in upstream_headers
        if name.lower() not in _DROPPED_HEADERS
    ]
    headers = with_cors(kept)
    headers["content-disposition"] = "inline"
    headers["accept-ranges"] = "bytes"
    headers["x-content-type-options"] = "nosniff"
    headers["cache-control"] = f"public, max-age={range_ttl if ranged else full_ttl}"
    headers.setdefault("content-type", "video/mp4")
    return headers


def video_cache_key(origin: str, pathname: str, range_header: str | None) -> str:
    """``origin + pathname``, suffixed with ``?range=...`` for ranged reads.

    >>> video_cache_key("https://edge.example", "/movie123", None)
    'https://edge.example/movie123'
    >>> video_cache_key("https://edge.example", "/movie123", "bytes=0-99")
    'https://edge.example/movie123?range=bytes=0-99'
    """
    key = f"{origin}{pathname}"
    if range_header:
        key = f"{key}?range={range_header}"
    return key


def upstream_outcome_key(file_id: str, range_header: str | None) -> str:
    return f"upstream:{file_id}:{range_header or ''}"


def ttl_for_status(status_code: int, table: Mapping[str, int]) -> int:
    """Look up the edge cache TTL for *status_code*.

    Keys are exact codes (``"404"``) or inclusive ranges (``"500-599"``).
    Unlisted codes are not cached.
    """
    for key, ttl in table.items():
        low, _, high = key.partition("-")
        if int(low) <= status_code <= int(high or low):
            return ttl
    return 0
