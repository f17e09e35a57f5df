"""Tests for the diskcache and Redis cache adapters."""

from __future__ import annotations

import pickle
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from vidrelay.domain.entities.streaming import CachedResponse
from vidrelay.infrastructure.cache import DiskcacheAdapter, RedisAdapter

_ENTRY = CachedResponse(200, [("content-type", "video/mp4")], b"\x00\x01\x02")


class TestDiskcacheAdapter:
    @pytest.mark.asyncio
    async def test_roundtrips_cached_response(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:
            await cache.set("https://edge.example/m", _ENTRY, ttl=60)
            assert await cache.get("https://edge.example/m") == _ENTRY
            assert await cache.exists("https://edge.example/m")

    @pytest.mark.asyncio
    async def test_zero_ttl_skipped(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:
            await cache.set("upstream:m:", 500, ttl=0)
            assert await cache.get("upstream:m:") is None

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:
            await cache.set("k", "v", ttl=60)
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:
            assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_requires_open(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            await DiskcacheAdapter(directory=tmp_path / "c").get("k")


@pytest.fixture()
def redis_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def redis_cache(redis_client: AsyncMock) -> RedisAdapter:
    adapter = RedisAdapter(url="redis://localhost:6379/0", namespace="test:")
    adapter._client = redis_client
    return adapter


class TestRedisAdapter:
    @pytest.mark.asyncio
    async def test_set_pickles_under_namespace(
        self, redis_cache: RedisAdapter, redis_client: AsyncMock
    ) -> None:
        await redis_cache.set("k", _ENTRY, ttl=30)
        key, ttl, packed = redis_client.setex.await_args.args
        assert key == "test:k"
        assert ttl == 30
        assert pickle.loads(packed) == _ENTRY

    @pytest.mark.asyncio
    async def test_get_unpickles(self, redis_cache: RedisAdapter, redis_client: AsyncMock) -> None:
        redis_client.get.return_value = pickle.dumps(_ENTRY)
        assert await redis_cache.get("k") == _ENTRY
        redis_client.get.assert_awaited_once_with("test:k")

    @pytest.mark.asyncio
    async def test_errors_degrade_to_miss(
        self, redis_cache: RedisAdapter, redis_client: AsyncMock
    ) -> None:
        redis_client.get.side_effect = RedisConnectionError("down")
        redis_client.setex.side_effect = RedisConnectionError("down")
        assert await redis_cache.get("k") is None
        await redis_cache.set("k", "v", ttl=10)

    @pytest.mark.asyncio
    async def test_zero_ttl_skipped(self, redis_cache: RedisAdapter, redis_client: AsyncMock) -> None:
        await redis_cache.set("k", "v", ttl=0)
        redis_client.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_requires_open(self) -> None:
        with pytest.raises(RuntimeError):
            await RedisAdapter().get("k")
