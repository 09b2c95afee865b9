"""Scan cache: opaque key/value store for finished scans, keyed by contract.

The cache only round-trips the scan's own output dict; it never looks
inside it. Redis-backed for the service, in-memory for tests and
one-off runs.
"""

import json
import time
from dataclasses import dataclass
from typing import Protocol

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

REDIS_KEY_PREFIX = "holderscan:"


@dataclass(frozen=True)
class CachedScan:
    timestamp_ms: int
    data: dict

    def age_sec(self, now_ms: int | None = None) -> float:
        now_ms = now_ms if now_ms is not None else _now_ms()
        return max(0.0, (now_ms - self.timestamp_ms) / 1000)


class ScanCache(Protocol):
    async def get(self, key: str) -> CachedScan | None: ...

    async def put(self, key: str, data: dict) -> int | None:
        """Store ``data``; the stored timestamp, or None if it could not be stored."""
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(contract: str) -> str:
    return contract.strip().lower()


class InMemoryScanCache:
    """Dict-backed cache. Lives as long as the object the caller holds."""

    def __init__(self) -> None:
        self._entries: dict[str, CachedScan] = {}

    async def get(self, key: str) -> CachedScan | None:
        return self._entries.get(cache_key(key))

    async def put(self, key: str, data: dict) -> int:
        ts = _now_ms()
        self._entries[cache_key(key)] = CachedScan(timestamp_ms=ts, data=data)
        return ts


class RedisScanCache:
    """Stores ``{"ts": ..., "data": ...}`` JSON under ``holderscan:<contract>``.

    Redis being down never fails a scan: ``get`` misses and ``put`` returns
    None so the caller knows nothing was stored.
    """

    def __init__(self, redis: Redis, *, ttl_sec: int | None = None) -> None:
        self._redis = redis
        self._ttl = ttl_sec

    async def get(self, key: str) -> CachedScan | None:
        redis_key = REDIS_KEY_PREFIX + cache_key(key)
        try:
            raw = await self._redis.get(redis_key)
            if not raw:
                return None
            try:
                payload = json.loads(raw)
                return CachedScan(timestamp_ms=int(payload["ts"]), data=payload["data"])
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"[CACHE] Dropping unreadable entry for {key[:12]}: {e}")
                await self._redis.delete(redis_key)
                return None
        except RedisError as e:
            logger.warning(f"[CACHE] Redis read failed for {key[:12]}, treating as miss: {e}")
            return None

    async def put(self, key: str, data: dict) -> int | None:
        ts = _now_ms()
        payload = json.dumps({"ts": ts, "data": data})
        try:
            await self._redis.set(REDIS_KEY_PREFIX + cache_key(key), payload, ex=self._ttl)
        except RedisError as e:
            logger.warning(f"[CACHE] Redis write failed for {key[:12]}, scan not cached: {e}")
            return None
        return ts
