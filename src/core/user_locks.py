"""Per-user serialization of account mutations."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar

from src.core.config import settings


logger = logging.getLogger(__name__)

_active_deadline: ContextVar[asyncio.Timeout | None] = ContextVar("active_deadline", default=None)


def release_deadline() -> None:
    """Lift the deadline of the current accounting step.

    Called once the account write has committed, so the follow-up side effects
    (leaderboard mirror, toast) run to completion instead of being cancelled
    halfway. No-op outside ``account_mutation``.
    """
    deadline = _active_deadline.get()
    if deadline is not None and not deadline.expired():
        deadline.reschedule(None)


class UserLockRegistry:
    """Asyncio locks keyed by user id, created on demand and dropped when idle.

    Every read-modify-write of an account record runs inside
    ``account_mutation`` so two rapid toggles on the same account are applied
    one after the other instead of overwriting each other.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def _acquire_entry(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        return lock

    def _release_entry(self, user_id: str) -> None:
        remaining = self._holders.get(user_id, 1) - 1
        if remaining <= 0:
            self._holders.pop(user_id, None)
            self._locks.pop(user_id, None)
        else:
            self._holders[user_id] = remaining

    def is_locked(self, user_id: str) -> bool:
        """Return True while a mutation for the user is in progress."""
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def account_mutation(self, user_id: str, *, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the user's lock for the duration of one accounting step.

        The deadline applies twice: once to waiting for the lock and once to
        the guarded work.

        Args:
            user_id: Account whose record is mutated
            timeout: Deadline in seconds (defaults to settings.store_timeout_seconds)

        Raises:
            TimeoutError: If the lock is not acquired or the guarded work does
                not finish before the deadline
        """
        deadline = settings.store_timeout_seconds if timeout is None else timeout
        lock = self._acquire_entry(user_id)
        try:
            async with asyncio.timeout(deadline):
                await lock.acquire()
            try:
                logger.debug("account_mutation_acquired", extra={"user_id": user_id})
                async with asyncio.timeout(deadline) as step_deadline:
                    token = _active_deadline.set(step_deadline)
                    try:
                        yield
                    finally:
                        _active_deadline.reset(token)
            finally:
                lock.release()
        finally:
            self._release_entry(user_id)


# Global lock registry instance
user_locks = UserLockRegistry()
