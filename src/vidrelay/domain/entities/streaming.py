"""Domain entities for the streaming edge proxy."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

ResourceKind = Literal["subtitle", "video"]

_SUBTITLE_SUFFIX_RE = re.compile(r"\.(srt|vtt)$", re.IGNORECASE)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached value plus its creation time.

    Staleness is checked by the reader against a fixed TTL; expired entries
    are treated as absent and overwritten on the next successful fetch.
    """

    data: T
    timestamp: float = field(default_factory=time.time)

    def is_expired(self, ttl_seconds: float, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current - self.timestamp >= ttl_seconds


@dataclass(frozen=True)
class StreamingRequest:
    """Incoming proxy request, reduced to what the state machine needs."""

    method: str
    origin: str  # scheme://host[:port]
    pathname: str
    url: str  # full request URL incl. query
    token: str | None = None
    exp: str | None = None
    range: str | None = None

    @property
    def is_liveness_probe(self) -> bool:
        return self.pathname in ("/", "/favicon.ico")


@dataclass(frozen=True)
class ResourceRoute:
    """Result of classifying a request path."""

    kind: ResourceKind
    file_name: str

    @property
    def file_id(self) -> str:
        """File name with any ``.srt``/``.vtt`` suffix stripped."""
        return _SUBTITLE_SUFFIX_RE.sub("", self.file_name)

    @property
    def is_srt(self) -> bool:
        return self.file_name.lower().endswith(".srt")


@dataclass(frozen=True)
class CachedResponse:
    """A fully buffered HTTP response stored in the proxy cache.

    Headers are kept as an ordered list of pairs so that the value pickles
    cleanly for the diskcache and Redis backends.
    """

    status_code: int
    headers: list[tuple[str, str]]
    body: bytes
