"""Daily challenge progress tracking.

Progress is the number of items dated today that are completed, capped at the
challenge goal. The reconciliation pass recomputes it from stored completion
flags and is authoritative on session start. Completion toggles derive the
same count from the store before each flip, so both paths agree.
"""

import logging
from collections.abc import Iterable
from datetime import date

from src.core import clock, db_client, state_store
from src.core.config import Constants
from src.core.logging import log_with_user_context, span
from src.core.user_locks import user_locks
from src.domain.task import TaskItem


logger = logging.getLogger(__name__)


def is_dated_today(item: TaskItem, today: date) -> bool:
    """Return True if the item's scheduled date falls on the given day."""
    return item.date.startswith(today.isoformat())


def count_completed_today(items: Iterable[TaskItem], today: date) -> int:
    return sum(1 for item in items if item.completed and is_dated_today(item, today))


def challenge_progress_from_items(items: Iterable[TaskItem], today: date) -> int:
    """Challenge progress implied by the given items: min(completed today, goal)."""
    return min(count_completed_today(items, today), Constants.DAILY_CHALLENGE_GOAL)


async def reconcile_challenge_progress(*, user_id: str) -> int | None:
    """Recompute challenge progress from the store and persist it if it drifted.

    Args:
        user_id: Account to reconcile

    Returns:
        The reconciled progress, or None if the store could not be read or written
    """
    with span("challenge_service.reconcile_challenge_progress"):
        try:
            async with user_locks.account_mutation(user_id):
                account = await state_store.read_account(user_id=user_id)
                today = clock.local_today()
                items = await state_store.list_completed_items(user_id=user_id, day=today)
                progress = challenge_progress_from_items(items, today)

                if progress != account.challenge_progress:
                    await state_store.write_account(user_id=user_id, fields={"challenge_progress": progress})
                    log_with_user_context(
                        logger,
                        "info",
                        "Reconciled challenge progress",
                        user_id=user_id,
                        stored=account.challenge_progress,
                        reconciled=progress,
                    )
                return progress
        except (db_client.DatabaseError, db_client.RecordNotFoundError, TimeoutError) as e:
            log_with_user_context(logger, "error", f"Challenge reconciliation failed: {e}", user_id=user_id)
            return None
