"""Tests for scan cache backends."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.holders.scan_cache import REDIS_KEY_PREFIX, CachedScan, RedisScanCache

TOKEN = "0x" + "ab" * 20


class TestCachedScan:
    def test_age(self) -> None:
        entry = CachedScan(timestamp_ms=10_000, data={})
        assert entry.age_sec(now_ms=25_000) == 15.0
        assert entry.age_sec(now_ms=5_000) == 0.0


class TestInMemoryScanCache:
    @pytest.mark.asyncio
    async def test_round_trip_case_insensitive(self, scan_cache) -> None:
        ts = await scan_cache.put(TOKEN.upper().replace("0X", "0x"), {"holders": 3})
        cached = await scan_cache.get(TOKEN)
        assert cached is not None
        assert cached.timestamp_ms == ts
        assert cached.data == {"holders": 3}

    @pytest.mark.asyncio
    async def test_miss(self, scan_cache) -> None:
        assert await scan_cache.get(TOKEN) is None


class TestRedisScanCache:
    @pytest.mark.asyncio
    async def test_put_writes_ts_and_data(self) -> None:
        redis = AsyncMock()
        cache = RedisScanCache(redis, ttl_sec=60)

        ts = await cache.put(TOKEN, {"empty": False})

        redis.set.assert_awaited_once()
        key, payload = redis.set.call_args.args
        assert key == REDIS_KEY_PREFIX + TOKEN
        assert json.loads(payload) == {"ts": ts, "data": {"empty": False}}
        assert redis.set.call_args.kwargs["ex"] == 60

    @pytest.mark.asyncio
    async def test_get_parses_entry(self) -> None:
        redis = AsyncMock()
        redis.get.return_value = json.dumps({"ts": 123, "data": {"a": 1}})
        cached = await RedisScanCache(redis).get(TOKEN)
        assert cached == CachedScan(timestamp_ms=123, data={"a": 1})

    @pytest.mark.asyncio
    async def test_unreadable_entry_dropped(self) -> None:
        redis = AsyncMock()
        redis.get.return_value = "{not json"
        assert await RedisScanCache(redis).get(TOKEN) is None
        redis.delete.assert_awaited_once_with(REDIS_KEY_PREFIX + TOKEN)

    @pytest.mark.asyncio
    async def test_missing_entry(self) -> None:
        redis = AsyncMock()
        redis.get.return_value = None
        assert await RedisScanCache(redis).get(TOKEN) is None
        redis.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_redis_down_is_miss(self) -> None:
        redis = AsyncMock()
        redis.get.side_effect = RedisConnectionError("refused")
        assert await RedisScanCache(redis).get(TOKEN) is None

    @pytest.mark.asyncio
    async def test_put_redis_down_returns_none(self) -> None:
        redis = AsyncMock()
        redis.set.side_effect = RedisConnectionError("refused")
        assert await RedisScanCache(redis, ttl_sec=60).put(TOKEN, {"empty": True}) is None
        redis.set.assert_awaited_once()
