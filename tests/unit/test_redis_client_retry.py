"""Unit tests for Redis client retry and fallback functionality."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.core.redis_client import RedisClient


def _connected_client() -> RedisClient:
    client = RedisClient()
    client._enabled = True
    client._client = AsyncMock()
    return client


@pytest.mark.unit
class TestRedisRetryLogic:
    """Tests for Redis retry logic and the invalidation queue."""

    async def test_delete_with_retry_success_first_attempt(self):
        client = _connected_client()

        result = await client.delete_with_retry("key1", "key2")

        assert result is True
        client._client.delete.assert_called_once_with("key1", "key2")

    async def test_delete_with_retry_success_after_retries(self):
        client = _connected_client()
        client._client.delete = AsyncMock(
            side_effect=[RedisConnectionError("First failure"), RedisConnectionError("Second failure"), None]
        )

        result = await client.delete_with_retry("key1", base_delay=0)

        assert result is True
        assert client._client.delete.call_count == 3
        assert client.get_health_status()["failure_count"] == 2

    async def test_delete_with_retry_queues_on_failure(self):
        client = _connected_client()
        client._client.delete = AsyncMock(side_effect=RedisConnectionError("Always fails"))

        result = await client.delete_with_retry("key1", "key2", base_delay=0)

        assert result is False
        assert list(client._invalidation_queue) == [("key1", "key2")]

    async def test_delete_with_retry_queues_when_unavailable(self):
        client = RedisClient()
        client._enabled = False
        client._client = None

        result = await client.delete_with_retry("key1")

        assert result is False
        assert list(client._invalidation_queue) == [("key1",)]

    async def test_queued_invalidations_replay_after_success(self):
        client = _connected_client()
        client._invalidation_queue.append(("old1",))
        client._invalidation_queue.append(("old2", "old3"))

        assert await client.delete_with_retry("new")

        assert len(client._invalidation_queue) == 0
        assert client._client.delete.call_count == 3

    async def test_replay_stops_on_failure(self):
        client = _connected_client()
        client._invalidation_queue.append(("key1",))
        client._invalidation_queue.append(("key2",))
        client._client.delete = AsyncMock(side_effect=RedisConnectionError("Failure"))

        await client._replay_invalidations()

        assert list(client._invalidation_queue) == [("key1",), ("key2",)]
        assert client._client.delete.call_count == 1

    async def test_fallback_queue_max_size(self):
        client = RedisClient()
        client._enabled = False
        client._client = None

        for i in range(1050):
            await client.delete_with_retry(f"key{i}")

        assert len(client._invalidation_queue) == 1000
        assert client.get_health_status()["pending_invalidations"] == 1000


@pytest.mark.unit
class TestRedisDegradation:
    """Tests for cache operations degrading to no-ops."""

    async def test_operations_without_redis(self):
        client = RedisClient()
        client._enabled = False
        client._client = None

        assert await client.get("key") is None
        assert await client.set("key", "value", 60) is False
        assert await client.keys("taskstreak:*") == []
        assert await client.ping() is False

    async def test_errors_count_as_failures(self):
        client = _connected_client()
        client._client.get = AsyncMock(side_effect=RedisConnectionError("Failure"))
        client._client.setex = AsyncMock(side_effect=RedisConnectionError("Failure"))

        assert await client.get("key") is None
        assert await client.set("key", "value", 60) is False
        assert client.get_health_status()["failure_count"] == 2

    async def test_keys_decodes_bytes(self):
        client = _connected_client()
        client._client.keys = AsyncMock(return_value=[b"taskstreak:leaderboard:10", "taskstreak:leaderboard:5"])

        assert await client.keys("taskstreak:leaderboard:*") == ["taskstreak:leaderboard:10", "taskstreak:leaderboard:5"]

    async def test_set_uses_ttl(self):
        client = _connected_client()

        assert await client.set("key", "value", 60)
        client._client.setex.assert_called_once_with("key", 60, "value")
