"""Shared test fixtures for the vidrelay test suite."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field

import pytest

from vidrelay.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from vidrelay.infrastructure.config.schema import ProxyConfig

NOW = 1_700_000_000.5
STREAM_TOKEN = "VALIDTOKEN"


class FixedClock:
    """Callable clock returning a settable time."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Upstream store fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeUpstreamResponse:
    status_code: int = 200
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    chunk_size: int = 4096
    closed: bool = False
    chunks_sent: int = 0

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def header_items(self) -> list[tuple[str, str]]:
        return list(self.headers)

    async def aiter_body(self) -> AsyncIterator[bytes]:
        for i in range(0, len(self.body), self.chunk_size):
            self.chunks_sent += 1
            yield self.body[i : i + self.chunk_size]

    async def aread_text(self) -> str:
        return self.body.decode("utf-8")

    async def aclose(self) -> None:
        self.closed = True


class FakeUpstreamStore:
    """Returns queued responses and records every open() call."""

    def __init__(
        self,
        *responses: FakeUpstreamResponse | Exception,
        configured: bool = True,
    ) -> None:
        self._responses = list(responses)
        self.configured = configured
        self.calls: list[tuple[str, str | None]] = []
        self.opened: list[FakeUpstreamResponse] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def open(
        self, file_id: str, *, range_header: str | None = None
    ) -> FakeUpstreamResponse:
        self.calls.append((file_id, range_header))
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        self.opened.append(item)
        return item


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def memory_cache(clock: FixedClock) -> MemoryCacheAdapter:
    return MemoryCacheAdapter(ttl_seconds=3600, clock=clock)


@pytest.fixture()
def proxy_config() -> ProxyConfig:
    return ProxyConfig(
        stream_token=STREAM_TOKEN,
        upstream_api_key="test-api-key",
        expose_error_details=True,
    )


@pytest.fixture()
def valid_query() -> str:
    return f"token={STREAM_TOKEN}&exp={int(NOW) + 3600}"


@pytest.fixture()
def make_upstream() -> type[FakeUpstreamResponse]:
    return FakeUpstreamResponse


@pytest.fixture()
def make_store() -> type[FakeUpstreamStore]:
    return FakeUpstreamStore
