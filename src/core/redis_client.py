"""Redis client for leaderboard caching."""

import asyncio
import logging
from collections import deque
from typing import Any

from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from src.core.config import Constants, settings


logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client wrapper with connection pooling.

    Every operation degrades to a no-op when Redis is not configured or
    fails, so callers can treat the cache as optional.
    """

    def __init__(self) -> None:
        self._client: Redis | None = None
        self._pool: ConnectionPool | None = None
        self._enabled = bool(settings.redis_url)
        self._failure_count = 0

        # Key groups whose deletion failed, replayed on the next successful delete
        self._invalidation_queue: deque[tuple[str, ...]] = deque(maxlen=Constants.REDIS_INVALIDATION_QUEUE_MAXLEN)

        if self._enabled and settings.redis_url:
            try:
                self._pool = ConnectionPool.from_url(
                    settings.redis_url,
                    decode_responses=True,
                    max_connections=Constants.REDIS_MAX_CONNECTIONS,
                )
                self._client = Redis(connection_pool=self._pool)
                logger.info("Redis client initialized with URL: %s", settings.redis_url)
            except RedisError as e:
                logger.warning("Failed to initialize Redis client: %s. Running without cache.", e)
                self._enabled = False
                self._client = None
                self._pool = None
        else:
            logger.info("Redis URL not configured. Running without cache.")

    @property
    def is_available(self) -> bool:
        """Check if Redis is available."""
        return self._enabled and self._client is not None

    def get_health_status(self) -> dict[str, Any]:
        return {
            "enabled": self._enabled,
            "connected": self.is_available,
            "failure_count": self._failure_count,
            "pending_invalidations": len(self._invalidation_queue),
        }

    async def get(self, key: str) -> str | None:
        """Get a cached value, or None on miss or error."""
        if not self.is_available or not self._client:
            return None

        try:
            value = await self._client.get(key)
            if value:
                logger.debug("Cache hit for key: %s", key)
            return value
        except RedisError as e:
            self._failure_count += 1
            logger.warning("Redis GET error for key %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Cache a value with a TTL; returns False when nothing was stored."""
        if not self.is_available or not self._client:
            return False

        try:
            await self._client.setex(key, ttl_seconds, value)
            logger.debug("Cached key: %s (TTL: %ds)", key, ttl_seconds)
            return True
        except RedisError as e:
            self._failure_count += 1
            logger.warning("Redis SET error for key %s: %s", key, e)
            return False

    async def keys(self, pattern: str) -> list[str]:
        """Find keys matching a pattern (e.g. 'taskstreak:leaderboard:*')."""
        if not self.is_available or not self._client:
            return []

        try:
            keys = await self._client.keys(pattern)
            return [k.decode() if isinstance(k, bytes) else k for k in keys]
        except RedisError as e:
            self._failure_count += 1
            logger.warning("Redis KEYS error for pattern %s: %s", pattern, e)
            return []

    async def delete_with_retry(self, *keys: str, max_retries: int = 3, base_delay: float = 0.1) -> bool:
        """Delete keys, retrying with exponential backoff and queueing on final failure.

        Returns:
            True if the keys were deleted, False if they were queued instead
        """
        if not keys:
            return False

        if not self.is_available or not self._client:
            self._invalidation_queue.append(keys)
            logger.info("Redis unavailable, queued %d key(s) for invalidation", len(keys))
            return False

        for attempt in range(max_retries):
            try:
                await self._client.delete(*keys)
                await self._replay_invalidations()
                return True
            except RedisError as e:
                self._failure_count += 1
                if attempt < max_retries - 1:
                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Redis DELETE failed (attempt %d/%d): %s. Retrying in %.2fs",
                        attempt + 1,
                        max_retries,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error("Redis DELETE failed after %d attempts: %s. Queued for later.", max_retries, e)

        self._invalidation_queue.append(keys)
        return False

    async def _replay_invalidations(self) -> None:
        while self._invalidation_queue and self._client:
            keys = self._invalidation_queue.popleft()
            try:
                await self._client.delete(*keys)
            except RedisError as e:
                self._invalidation_queue.appendleft(keys)
                logger.warning("Failed to replay queued invalidation: %s", e)
                return

    async def ping(self) -> bool:
        """Ping Redis to check connection."""
        if not self.is_available or not self._client:
            return False

        try:
            return bool(await self._client.ping())  # type: ignore[misc]
        except RedisError as e:
            logger.warning("Redis PING failed: %s", e)
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            logger.info("Redis client closed")


# Global Redis client instance
redis_client = RedisClient()
