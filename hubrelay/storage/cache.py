"""
Short-TTL Redis cache for processing guards and metadata memoization.

The cache is never authoritative. Every Redis failure is logged and
degraded to "cache miss" (reads) or "no-op" (writes). A failed guard
acquisition is reported as acquired so that processing falls through to
the durable store, which is the only tier relied on for correctness.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Thin best-effort wrapper over a shared Redis client.

    Usage:
        cache = RedisCache(redis_client, key_prefix="relay:")
        if await cache.acquire_lock(f"proc:{item_id}", ttl_seconds=300):
            try:
                ...
            finally:
                await cache.release_lock(f"proc:{item_id}")
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "relay:"):
        self._redis = redis_client
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def acquire_lock(self, key: str, ttl_seconds: int) -> bool:
        """
        Try to take a short-lived lock.

        Returns False only when another holder owns the lock. If Redis is
        unreachable the lock is treated as acquired.
        """
        try:
            acquired = await self._redis.set(self._key(key), "1", nx=True, ex=ttl_seconds)
            return bool(acquired)
        except Exception as e:
            logger.warning(f"Cache lock acquire failed for {key}, proceeding unguarded: {e}")
            return True

    async def take_lock(self, key: str, ttl_seconds: int) -> None:
        """Take a lock over unconditionally, e.g. from a holder that died."""
        try:
            await self._redis.set(self._key(key), "1", ex=ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache lock takeover failed for {key}, proceeding unguarded: {e}")

    async def release_lock(self, key: str) -> None:
        """Release a lock taken with acquire_lock()."""
        try:
            await self._redis.delete(self._key(key))
        except Exception as e:
            logger.warning(f"Cache lock release failed for {key}: {e}")

    async def get_json(self, key: str) -> Any | None:
        """Get a cached JSON value, or None on miss or error."""
        try:
            cached = await self._redis.get(self._key(key))
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if cached is None:
            return None

        try:
            return json.loads(cached)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Cache a JSON-serializable value with a TTL."""
        try:
            await self._redis.setex(self._key(key), ttl_seconds, json.dumps(value))
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
