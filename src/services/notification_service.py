"""Notification service delivering point-change toasts to signed-in clients."""

import asyncio
import logging
from collections.abc import AsyncIterator

from src.core.config import Constants
from src.domain.points import PointsNotification


logger = logging.getLogger(__name__)


class NotificationChannel:
    """Per-user broadcast of PointsNotification events.

    Publishing never blocks: each listener has a bounded buffer and the
    oldest undelivered toast is dropped when a listener falls behind.
    """

    def __init__(self, maxsize: int = Constants.NOTIFICATION_QUEUE_MAXSIZE) -> None:
        self._maxsize = maxsize
        self._listeners: dict[str, list[asyncio.Queue[PointsNotification]]] = {}

    def listen(self, user_id: str) -> asyncio.Queue[PointsNotification]:
        """Register a listener queue for the user's notifications."""
        queue: asyncio.Queue[PointsNotification] = asyncio.Queue(maxsize=self._maxsize)
        self._listeners.setdefault(user_id, []).append(queue)
        return queue

    def unlisten(self, user_id: str, queue: asyncio.Queue[PointsNotification]) -> None:
        listeners = self._listeners.get(user_id, [])
        if queue in listeners:
            listeners.remove(queue)
        if not listeners:
            self._listeners.pop(user_id, None)

    def publish(self, notification: PointsNotification) -> int:
        """Deliver a notification to every listener of its user."""
        listeners = self._listeners.get(notification.user_id, [])
        for queue in listeners:
            if queue.full():
                dropped = queue.get_nowait()
                logger.warning(
                    "Notification buffer full, dropped oldest toast",
                    extra={"user_id": notification.user_id, "dropped_kind": dropped.kind},
                )
            queue.put_nowait(notification)

        logger.info(
            "Published points notification",
            extra={
                "user_id": notification.user_id,
                "kind": notification.kind,
                "delta": notification.delta,
                "listeners": len(listeners),
            },
        )
        return len(listeners)

    async def stream(self, user_id: str) -> AsyncIterator[PointsNotification]:
        """Yield the user's notifications until the consumer stops iterating."""
        queue = self.listen(user_id)
        try:
            while True:
                yield await queue.get()
        finally:
            self.unlisten(user_id, queue)


# Global notification channel instance
notification_channel = NotificationChannel()


def notify(notification: PointsNotification | None) -> None:
    """Publish a notification if there is one."""
    if notification is not None:
        notification_channel.publish(notification)
