"""Leaderboard service.

This module provides functions for:
- Mirroring a user's point total into the leaderboard collection
- Reading the top point holders (cached in Redis when configured)
- Looking up a single user's rank

Key Concepts:
- Mirror: the leaderboard entry is a derived copy of the account's points,
  overwritten after every point mutation. A failed mirror write is logged and
  reported to the caller but never fails the accounting step that triggered it.
"""

import asyncio
import json
import logging

from pydantic import ValidationError

from src.core import db_client, state_store
from src.core.config import Constants, settings
from src.core.logging import span
from src.core.redis_client import redis_client
from src.models.service_models import LeaderboardEntry, LeaderboardStanding


logger = logging.getLogger(__name__)

_CACHE_KEY_PREFIX = "taskstreak:leaderboard"


async def invalidate_leaderboard_cache() -> None:
    """Invalidate all cached leaderboard pages.

    Failures are logged and queued for retry by the Redis client; they never
    raise, and a stale page lives at most CACHE_TTL_LEADERBOARD_SECONDS.
    """
    try:
        keys = await redis_client.keys(f"{_CACHE_KEY_PREFIX}:*")
        if keys:
            await redis_client.delete_with_retry(*keys)
            logger.debug("Invalidated %d leaderboard cache entries", len(keys))
    except Exception as e:
        logger.warning("Failed to invalidate leaderboard cache: %s", e)


async def mirror(*, user_id: str, points: int, name: str | None = None) -> bool:
    """Overwrite the user's leaderboard entry with their current point total.

    Args:
        user_id: Account whose points changed
        points: New point total
        name: Display name to store alongside (left unchanged when None)

    Returns:
        True if the entry was written, False if the write failed
    """
    with span("leaderboard_service.mirror"):
        try:
            async with asyncio.timeout(settings.store_timeout_seconds):
                await state_store.write_leaderboard_entry(user_id=user_id, points=points, name=name)
        except (db_client.DatabaseError, ValueError, TimeoutError) as e:
            logger.error("Failed to mirror points to leaderboard for user %s: %s", user_id, e)
            return False

        logger.info("Mirrored %d points to leaderboard for user %s", points, user_id)
        await invalidate_leaderboard_cache()
        return True


async def remove_entry(*, user_id: str) -> None:
    """Remove a user's leaderboard entry (account deletion)."""
    with span("leaderboard_service.remove_entry"):
        try:
            await state_store.delete_leaderboard_entry(user_id=user_id)
        except db_client.RecordNotFoundError:
            logger.debug("No leaderboard entry to remove for user %s", user_id)
            return
        await invalidate_leaderboard_cache()
        logger.info("Removed leaderboard entry for user %s", user_id)


async def get_leaderboard(*, limit: int = Constants.LEADERBOARD_TOP_N) -> list[LeaderboardEntry]:
    """Get the top point holders, highest first.

    Args:
        limit: Number of entries to return (default: 10)

    Returns:
        List of LeaderboardEntry objects sorted by points descending
    """
    cache_key = f"{_CACHE_KEY_PREFIX}:{limit}"
    cached_value = await redis_client.get(cache_key)
    if cached_value:
        try:
            return [LeaderboardEntry(**entry) for entry in json.loads(cached_value)]
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to deserialize cached leaderboard: %s", e)

    with span("leaderboard_service.get_leaderboard"):
        records = await state_store.list_leaderboard(limit=limit)

        entries = []
        for record in records:
            try:
                entries.append(LeaderboardEntry(user_id=record["id"], name=record.get("name"), points=record["points"]))
            except (KeyError, ValidationError) as e:
                logger.error("Skipping malformed leaderboard record %s: %s", record.get("id"), e)

        entries.sort(key=lambda entry: entry.points, reverse=True)

        await redis_client.set(
            cache_key,
            json.dumps([entry.model_dump() for entry in entries]),
            Constants.CACHE_TTL_LEADERBOARD_SECONDS,
        )

        logger.info("Generated leaderboard: %d entries", len(entries))
        return entries


async def get_standing(*, user_id: str) -> LeaderboardStanding | None:
    """Get a user's rank (1-based) and points, or None if they have no entry.

    Rank is one more than the number of entries with strictly more points, so
    tied users share a rank.
    """
    with span("leaderboard_service.get_standing"):
        record = await state_store.read_leaderboard_entry(user_id=user_id)
        if record is None:
            return None

        ahead = await state_store.count_leaderboard(min_points_exclusive=record["points"])
        return LeaderboardStanding(
            user_id=user_id,
            rank=ahead + 1,
            points=record["points"],
            total_entries=await state_store.count_leaderboard(),
        )
