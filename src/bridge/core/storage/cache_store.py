"""Cache store interface and implementations.

Holds the only state shared between requests: rate-limit counters and the
short-lived minted-token cache. The in-memory store is process-local; the
Redis store lets several instances share one view.
"""

from __future__ import annotations

import asyncio
import json
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from loguru import logger

from src.bridge.runtime.config.config_data import ConfigData


class CacheStore(ABC):
    """Abstract interface for TTL cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the JSON-compatible value stored under ``key``.

        Args:
            key: Cache key

        Returns:
            Stored value or None if not found/expired
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store a JSON-compatible value with TTL.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Time to live in seconds
        """
        pass

    @abstractmethod
    async def evict(self, key: str) -> None:
        """Remove ``key`` if present."""
        pass

    @abstractmethod
    async def incr(self, key: str, ttl_seconds: int) -> int:
        """Increment a counter, starting its TTL when the counter is created.

        Args:
            key: Counter key
            ttl_seconds: Lifetime applied only on creation (fixed window)

        Returns:
            The counter value after incrementing
        """
        pass

    @abstractmethod
    async def ttl(self, key: str) -> int | None:
        """Seconds until ``key`` expires, or None when it does not exist."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

    async def close(self) -> None:
        return None


class InMemoryCacheStore(CacheStore):
    """Process-local store with TTL support.

    Expired entries are dropped when read and, at most once per
    ``cleanup_interval`` seconds, swept from writes so keys that are never
    read again (one-off client addresses) do not accumulate.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval: float = 60.0,
    ) -> None:
        self._data: dict[str, tuple[Any, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = clock()

    def __len__(self) -> int:
        return len(self._data)

    def _live(self, key: str) -> tuple[Any, float] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if self._clock() >= entry[1]:
            del self._data[key]
            return None
        return entry

    def _cleanup_expired(self) -> None:
        if self._clock() - self._last_cleanup < self._cleanup_interval:
            return
        removed = self.purge_expired()
        if removed:
            logger.debug("Purged {} expired cache entries", removed)

    async def get(self, key: str) -> Any | None:
        entry = self._live(key)
        return None if entry is None else entry[0]

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._cleanup_expired()
        # Round-trip through JSON so both backends hand back the same shapes.
        self._data[key] = (json.loads(json.dumps(value)), self._clock() + ttl_seconds)

    async def evict(self, key: str) -> None:
        self._data.pop(key, None)

    async def incr(self, key: str, ttl_seconds: int) -> int:
        async with self._lock:
            self._cleanup_expired()
            entry = self._live(key)
            if entry is None:
                self._data[key] = (1, self._clock() + ttl_seconds)
                return 1
            count = int(entry[0]) + 1
            self._data[key] = (count, entry[1])
            return count

    async def ttl(self, key: str) -> int | None:
        entry = self._live(key)
        if entry is None:
            return None
        return max(0, math.ceil(entry[1] - self._clock()))

    def purge_expired(self) -> int:
        now = self._clock()
        self._last_cleanup = now
        expired = [key for key, (_, expires_at) in self._data.items() if now >= expires_at]
        for key in expired:
            del self._data[key]
        return len(expired)

    def is_available(self) -> bool:
        """In-memory storage is always available."""
        return True


class RedisCacheStore(CacheStore):
    """Redis-based store; values are JSON encoded."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._available = True

    async def get(self, key: str) -> Any | None:
        try:
            data = await self._redis.get(key)
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis get failed: {e}") from e
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self._redis.set(key, json.dumps(value), ex=ttl_seconds)
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis set failed: {e}") from e

    async def evict(self, key: str) -> None:
        try:
            await self._redis.delete(key)
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis delete failed: {e}") from e

    async def incr(self, key: str, ttl_seconds: int) -> int:
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds, nx=True)
                count, _ = await pipe.execute()
            self._available = True
            return int(count)
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis incr failed: {e}") from e

    async def ttl(self, key: str) -> int | None:
        try:
            remaining = await self._redis.ttl(key)
            self._available = True
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis ttl failed: {e}") from e
        # -2: missing key, -1: no expiry
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    def is_available(self) -> bool:
        return self._available

    async def ping(self) -> bool:
        try:
            await self._redis.ping()
            self._available = True
            return True
        except Exception:
            self._available = False
            return False

    async def close(self) -> None:
        await self._redis.aclose()


async def create_cache_store(config: ConfigData) -> CacheStore:
    """Build the configured store, falling back to memory outside production."""
    if not config.redis.enabled or not config.redis.url:
        logger.info("Redis not configured; using in-memory cache store")
        return InMemoryCacheStore()

    import redis.asyncio as redis_async

    client = redis_async.from_url(
        config.redis.connection_string,
        encoding="utf-8",
        decode_responses=config.redis.decode_responses,
        socket_connect_timeout=config.redis.socket_timeout,
        socket_timeout=config.redis.socket_timeout,
    )
    store = RedisCacheStore(client)
    if await store.ping():
        logger.info("Cache store: Redis connected")
        return store

    await store.close()
    if config.app.environment == "production":
        raise RuntimeError("Redis cache store configured but unreachable")
    logger.warning("Redis unavailable, using in-memory cache store")
    return InMemoryCacheStore()
