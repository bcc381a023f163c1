"""Task completion accounting and the daily challenge bonus.

The challenge is driven by the number of completed items dated today, read
from the store before each flip. The completion that brings the count to the
goal earns the combined challenge award (70) instead of the normal completion
bonus (20). Un-completing mirrors it exactly: only the undo that takes the
count from the goal to goal - 1 deducts 70, any other undo deducts 20, so
completions beyond the goal are reversed at 20 each. Items dated on other days
earn or lose a flat 20 and leave progress alone.

Point totals clamp at zero while progress still follows the count, so a user
with fewer points than the deduction keeps the lower progress with no further
point loss.
"""

import asyncio
import logging

from src.core import clock, db_client, state_store
from src.core.config import Constants, settings
from src.core.logging import log_with_user_context, span
from src.core.user_locks import user_locks
from src.domain.points import PointsNotification
from src.domain.task import ItemKind, TaskCreate, TaskItem
from src.models.service_models import AccountingResult
from src.services.challenge_service import count_completed_today, is_dated_today
from src.services.points_service import ACCOUNTING_ERRORS, commit_points, failed_result, unchanged_result


logger = logging.getLogger(__name__)


def completion_delta(
    *, completed_today: int, completed: bool, counts_toward_challenge: bool = True
) -> tuple[int, int]:
    """Point delta and new challenge progress for one completion flip.

    Args:
        completed_today: Completed items dated today before the flip
        completed: New completion state (True = completed, False = undone)
        counts_toward_challenge: Whether the flipped item is dated today

    Returns:
        Tuple of (points delta, new challenge progress)
    """
    goal = Constants.DAILY_CHALLENGE_GOAL
    task_points = Constants.TASK_COMPLETION_POINTS
    challenge_points = Constants.DAILY_CHALLENGE_COMPLETE_POINTS

    if not counts_toward_challenge:
        return (task_points if completed else -task_points), min(completed_today, goal)

    if completed:
        new_count = completed_today + 1
        delta = challenge_points if new_count == goal else task_points
    else:
        new_count = max(completed_today - 1, 0)
        delta = -challenge_points if completed_today == goal else -task_points
    return delta, min(new_count, goal)


async def toggle_completion(
    *,
    user_id: str,
    item_id: str,
    completed: bool,
    kind: ItemKind = ItemKind.TASK,
) -> AccountingResult:
    """Set an item's completion flag and apply the resulting point change.

    Steps run in order, each awaiting the previous: count today's completed
    items, persist the flag, persist points and progress together, mirror the
    leaderboard, publish the toast. If the points write fails or the step runs
    out of time before it lands, the flag is put back. Requesting the state
    the item already has is a no-op.

    Args:
        user_id: Owner of the item
        item_id: Task or subtask ID
        completed: Requested completion state
        kind: Whether item_id names a task or a subtask

    Returns:
        AccountingResult with the applied delta, or the failure
    """
    with span("completion_service.toggle_completion"):
        try:
            async with user_locks.account_mutation(user_id):
                item = await state_store.read_item(user_id=user_id, item_id=item_id, kind=kind)
                if item.completed == completed:
                    account = await state_store.read_account(user_id=user_id)
                    logger.debug("Item %s already has completed=%s, nothing to do", item_id, completed)
                    return unchanged_result(account)

                today = clock.local_today()
                completed_today = count_completed_today(
                    await state_store.list_completed_items(user_id=user_id, day=today), today
                )

                await state_store.write_item(user_id=user_id, item_id=item_id, kind=kind, fields={"completed": completed})
                try:
                    return await _apply_completion_points(
                        item=item, completed=completed, completed_today=completed_today
                    )
                except (*ACCOUNTING_ERRORS, asyncio.CancelledError):
                    await _restore_completion_flag(item)
                    raise
        except ACCOUNTING_ERRORS as e:
            return failed_result(user_id=user_id, error=e)


async def _apply_completion_points(*, item: TaskItem, completed: bool, completed_today: int) -> AccountingResult:
    account = await state_store.read_account(user_id=item.user_id)
    counts = is_dated_today(item, clock.local_today())
    delta, new_progress = completion_delta(
        completed_today=completed_today,
        completed=completed,
        counts_toward_challenge=counts,
    )

    if counts and delta == Constants.DAILY_CHALLENGE_COMPLETE_POINTS:
        log_with_user_context(logger, "info", "Daily challenge completed", user_id=item.user_id, item_id=item.id)

    return await commit_points(
        account=account,
        delta=delta,
        extra_fields={"challenge_progress": new_progress} if counts else None,
        notification=PointsNotification.for_delta(user_id=item.user_id, delta=delta),
    )


async def _restore_completion_flag(item: TaskItem) -> None:
    try:
        async with asyncio.timeout(settings.store_timeout_seconds):
            await state_store.write_item(
                user_id=item.user_id, item_id=item.id, kind=item.kind, fields={"completed": item.completed}
            )
        logger.warning("Restored completion flag of %s %s after failed points update", item.kind, item.id)
    except (db_client.DatabaseError, TimeoutError) as e:
        logger.error("Could not restore completion flag of %s %s: %s", item.kind, item.id, e)


async def create_item(
    *,
    user_id: str,
    data: TaskCreate,
    kind: ItemKind = ItemKind.TASK,
    parent_task_id: str | None = None,
) -> tuple[TaskItem | None, AccountingResult]:
    """Create a task (earning the task-created bonus) or a subtask (no bonus).

    Args:
        user_id: Owner of the new item
        data: Validated item fields
        kind: Task or subtask
        parent_task_id: Required for subtasks; must be one of the user's tasks

    Returns:
        Tuple of (created item or None on failure, AccountingResult)

    Raises:
        ValueError: If a subtask is requested without a parent task
    """
    if kind is ItemKind.SUBTASK and not parent_task_id:
        msg = "Subtasks require a parent task"
        raise ValueError(msg)

    with span("completion_service.create_item"):
        try:
            async with user_locks.account_mutation(user_id):
                fields = data.model_dump()
                if kind is ItemKind.SUBTASK:
                    await state_store.read_item(user_id=user_id, item_id=parent_task_id, kind=ItemKind.TASK)
                    fields["parent_task_id"] = parent_task_id

                item = await state_store.create_item(user_id=user_id, kind=kind, data=fields)
                account = await state_store.read_account(user_id=user_id)
                if kind is ItemKind.SUBTASK:
                    return item, unchanged_result(account)

                bonus = Constants.TASK_CREATED_POINTS
                result = await commit_points(
                    account=account,
                    delta=bonus,
                    notification=PointsNotification.for_delta(user_id=user_id, delta=bonus),
                )
                return item, result
        except ACCOUNTING_ERRORS as e:
            return None, failed_result(user_id=user_id, error=e)


async def delete_item(*, user_id: str, item_id: str, kind: ItemKind = ItemKind.TASK) -> AccountingResult:
    """Delete a task (with its subtasks) or a subtask and apply the flat penalty.

    The penalty (10 per task, 5 per subtask) applies whether or not the item
    was completed and does not move challenge progress.
    """
    with span("completion_service.delete_item"):
        try:
            async with user_locks.account_mutation(user_id):
                await state_store.read_item(user_id=user_id, item_id=item_id, kind=kind)

                if kind is ItemKind.TASK:
                    for subtask in await state_store.list_subtasks(user_id=user_id, parent_task_id=item_id):
                        await state_store.delete_item(user_id=user_id, item_id=subtask.id, kind=ItemKind.SUBTASK)
                    penalty = Constants.TASK_DELETED_PENALTY
                else:
                    penalty = Constants.SUBTASK_DELETED_PENALTY

                await state_store.delete_item(user_id=user_id, item_id=item_id, kind=kind)
                account = await state_store.read_account(user_id=user_id)
                return await commit_points(
                    account=account,
                    delta=-penalty,
                    notification=PointsNotification.for_delta(user_id=user_id, delta=-penalty),
                )
        except ACCOUNTING_ERRORS as e:
            return failed_result(user_id=user_id, error=e)
