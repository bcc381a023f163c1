"""In-process change feed for store records.

Writes made through the state store are published here after they commit.
Subscribers receive every event for the collection and user they registered
for, in publish order per subscription; there is no ordering guarantee across
different collections or users.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class ChangeAction(StrEnum):
    """Kind of change applied to a record."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """A committed change to one record."""

    collection: str = Field(..., description="Collection the record belongs to")
    record_id: str = Field(..., description="ID of the changed record")
    user_id: str = Field(..., description="Owner of the record")
    action: ChangeAction
    record: dict[str, Any] | None = Field(default=None, description="Record after the change (None on delete)")


class Subscription:
    """Queue-backed stream of change events for one (collection, user) key."""

    def __init__(self, feed: "ChangeFeed", key: tuple[str, str]) -> None:
        self._feed = feed
        self.key = key
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: ChangeEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def pending(self) -> int:
        """Number of events delivered but not yet consumed."""
        return self._queue.qsize()

    async def get(self) -> ChangeEvent | None:
        """Wait for the next event; returns None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        """Stop receiving events and wake any waiting consumer."""
        if self.closed:
            return
        self.closed = True
        self._feed._unsubscribe(self)
        self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class ChangeFeed:
    """Fan-out of committed store changes to subscribers."""

    def __init__(self) -> None:
        self._subscribers: dict[tuple[str, str], list[Subscription]] = {}

    def subscribe(self, *, collection: str, user_id: str) -> Subscription:
        """Register for changes to a user's records in one collection."""
        key = (collection, user_id)
        subscription = Subscription(self, key)
        self._subscribers.setdefault(key, []).append(subscription)
        logger.debug("Subscribed to changes", extra={"collection": collection, "user_id": user_id})
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.key, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscribers.pop(subscription.key, None)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every matching subscriber and return how many received it."""
        subscribers = list(self._subscribers.get((event.collection, event.user_id), []))
        for subscription in subscribers:
            subscription._deliver(event)
        return len(subscribers)

    def subscriber_count(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())


# Global change feed instance
change_feed = ChangeFeed()
