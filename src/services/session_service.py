"""Points session for the signed-in user.

A PointsSession is what the UI links against: it reacts to auth state
changes, runs the daily login and challenge reconciliation when a user signs
in, exposes the observable points/streak/challenge state, and forwards point
actions to the accounting services.

State is derived by reducers from the latest account and item snapshots
delivered on the change feed, so every writer (this session, another screen,
a background job) ends up reflected the same way.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from src.core import state_store
from src.core.change_feed import ChangeAction, ChangeEvent, Subscription
from src.core.logging import span
from src.domain.account import UserAccount
from src.domain.points import PointsNotification, PointsState
from src.domain.task import ItemKind, TaskItem
from src.models.service_models import AccountingResult
from src.services import challenge_service, completion_service, login_service, points_service
from src.services.notification_service import notification_channel
from src.services.points_service import ACCOUNTING_ERRORS


logger = logging.getLogger(__name__)


def state_from_account(account: UserAccount) -> PointsState:
    return PointsState(
        user_id=account.id,
        points=account.points,
        streak=account.streak,
        challenge_progress=account.challenge_progress,
        last_login_date=account.last_login_date,
    )


def reduce_account(state: PointsState, event: ChangeEvent) -> PointsState:
    """Derive the observable state from an account change event.

    A deleted account zeroes the counters but keeps the signed-in user, so the
    session stays subscribed until the next auth change tears it down.
    """
    if event.action is ChangeAction.DELETE or event.record is None:
        return PointsState(user_id=state.user_id)
    return state_from_account(UserAccount.model_validate(event.record))


def reduce_items(items: dict[str, TaskItem], event: ChangeEvent) -> dict[str, TaskItem]:
    """Apply an item change event to the snapshot of the user's items."""
    updated = dict(items)
    if event.action is ChangeAction.DELETE or event.record is None:
        for key in [key for key, item in updated.items() if item.id == event.record_id]:
            del updated[key]
        return updated

    item = TaskItem.model_validate(event.record)
    updated[f"{item.kind}:{item.id}"] = item
    return updated


class PointsSession:
    """Observable points state and point actions for one signed-in user."""

    def __init__(self) -> None:
        self._state = PointsState()
        self._items: dict[str, TaskItem] = {}
        self._subscriptions: list[Subscription] = []
        self._consumers: list[asyncio.Task[None]] = []

    @property
    def user_id(self) -> str | None:
        return self._state.user_id

    @property
    def state(self) -> PointsState:
        """Current points, streak and challenge progress (read-only)."""
        return self._state

    @property
    def items(self) -> list[TaskItem]:
        return list(self._items.values())

    async def on_auth_state_changed(self, user_id: str | None) -> AccountingResult | None:
        """Handle a sign-in (user_id set) or sign-out (None).

        On sign-in, subscribes to the user's account and items, grants the
        daily login bonus if due, reconciles challenge progress and loads the
        initial snapshot. Store failures are logged; the session then shows
        whatever state could be loaded.

        Returns:
            The daily login result on sign-in, None otherwise
        """
        if user_id == self._state.user_id:
            return None

        await self._stop()
        if user_id is None:
            logger.info("Signed out, points state reset")
            return None

        with span("session_service.sign_in"):
            self._state = PointsState(user_id=user_id)
            self._start_consumers(user_id)

            login_result = await login_service.record_daily_login(user_id=user_id)
            await challenge_service.reconcile_challenge_progress(user_id=user_id)
            await self.refresh()
            logger.info("Session started for user %s", user_id)
            return login_result

    async def refresh(self) -> None:
        """Reload the account and items snapshot from the store."""
        user_id = self._require_user()
        try:
            account = await state_store.read_account(user_id=user_id)
            items = await state_store.list_items(user_id=user_id)
        except ACCOUNTING_ERRORS as e:
            logger.error("Failed to refresh points state for user %s: %s", user_id, e)
            return

        self._state = state_from_account(account)
        self._items = {f"{item.kind}:{item.id}": item for item in items}

    async def add_points(self, delta: int) -> AccountingResult:
        result = await points_service.add_points(user_id=self._require_user(), delta=delta)
        self._apply_result(result)
        return result

    async def complete_task(self, item_id: str, completed: bool, kind: ItemKind = ItemKind.TASK) -> AccountingResult:
        result = await completion_service.toggle_completion(
            user_id=self._require_user(), item_id=item_id, completed=completed, kind=kind
        )
        self._apply_result(result)
        return result

    async def notifications(self) -> AsyncIterator[PointsNotification]:
        """Stream of toasts for the signed-in user's point changes."""
        async for notification in notification_channel.stream(self._require_user()):
            yield notification

    async def settle(self) -> None:
        """Wait until every delivered change event has been reduced."""
        while any(subscription.pending() for subscription in self._subscriptions):
            await asyncio.sleep(0)

    async def close(self) -> None:
        await self._stop()

    def _require_user(self) -> str:
        if self._state.user_id is None:
            msg = "No user is signed in"
            raise PermissionError(msg)
        return self._state.user_id

    def _apply_result(self, result: AccountingResult) -> None:
        if not result.success or result.user_id != self._state.user_id or result.points is None:
            return
        self._state = self._state.model_copy(
            update={
                "points": result.points,
                "streak": result.streak if result.streak is not None else self._state.streak,
                "challenge_progress": (
                    result.challenge_progress
                    if result.challenge_progress is not None
                    else self._state.challenge_progress
                ),
            }
        )

    def _start_consumers(self, user_id: str) -> None:
        account_subscription = state_store.subscribe_account(user_id=user_id)
        items_subscription = state_store.subscribe_tasks(user_id=user_id)
        self._subscriptions = [account_subscription, items_subscription]
        self._consumers = [
            asyncio.create_task(self._consume_account(account_subscription)),
            asyncio.create_task(self._consume_items(items_subscription)),
        ]

    async def _consume_account(self, subscription: Subscription) -> None:
        async for event in subscription:
            self._state = reduce_account(self._state, event)

    async def _consume_items(self, subscription: Subscription) -> None:
        async for event in subscription:
            self._items = reduce_items(self._items, event)

    async def _stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        for consumer in self._consumers:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
        self._subscriptions = []
        self._consumers = []
        self._items = {}
        self._state = PointsState()
