"""Point mutations shared by every accounting flow.

Each mutation reads the account, clamps the new total at zero, persists it,
mirrors it to the leaderboard and publishes a toast, in that order. Callers
hold the user's account_mutation lock around the whole sequence.
"""

import logging
from typing import Any

from src.core import db_client, state_store
from src.core.logging import log_with_user_context, span
from src.core.user_locks import release_deadline, user_locks
from src.domain.account import UserAccount
from src.domain.points import PointsNotification
from src.models.service_models import AccountingResult
from src.services import leaderboard_service
from src.services.notification_service import notify


logger = logging.getLogger(__name__)

# Errors that abort an accounting step without crashing the caller
ACCOUNTING_ERRORS = (db_client.DatabaseError, db_client.RecordNotFoundError, TimeoutError)


def clamp_points(points: int) -> int:
    return max(points, 0)


def failed_result(*, user_id: str, error: BaseException) -> AccountingResult:
    """Log an aborted accounting step and describe it to the caller."""
    message = str(error) or type(error).__name__
    if isinstance(error, TimeoutError):
        message = "Accounting step timed out waiting for the store"
    log_with_user_context(logger, "error", f"Accounting step failed: {message}", user_id=user_id)
    return AccountingResult(user_id=user_id, success=False, error=message)


def unchanged_result(account: UserAccount) -> AccountingResult:
    return AccountingResult(
        user_id=account.id,
        success=True,
        changed=False,
        points=account.points,
        streak=account.streak,
        challenge_progress=account.challenge_progress,
    )


async def commit_points(
    *,
    account: UserAccount,
    delta: int,
    extra_fields: dict[str, Any] | None = None,
    notification: PointsNotification | None = None,
) -> AccountingResult:
    """Persist account.points + delta (clamped at 0) together with extra_fields.

    The write is a single update, so points and any extra fields (streak,
    challenge progress, login date) land together or not at all. Must be
    called while holding the user's account_mutation lock. Once the write
    lands the step deadline is lifted, so a committed change is always
    mirrored and reported as applied.

    Raises:
        db_client.DatabaseError: If the account write fails
    """
    new_points = clamp_points(account.points + delta)
    if new_points != account.points + delta:
        log_with_user_context(
            logger,
            "info",
            "Clamped points at zero",
            user_id=account.id,
            requested_delta=delta,
            previous_points=account.points,
        )

    updated = await state_store.write_account(
        user_id=account.id,
        fields={"points": new_points, **(extra_fields or {})},
    )
    release_deadline()
    synced = await leaderboard_service.mirror(user_id=account.id, points=updated.points)
    notify(notification)

    log_with_user_context(
        logger,
        "info",
        "Points updated",
        user_id=account.id,
        delta=delta,
        points=updated.points,
        leaderboard_synced=synced,
    )
    return AccountingResult(
        user_id=account.id,
        success=True,
        changed=True,
        delta=delta,
        points=updated.points,
        streak=updated.streak,
        challenge_progress=updated.challenge_progress,
        notification=notification,
        leaderboard_synced=synced,
    )


async def add_points(*, user_id: str, delta: int) -> AccountingResult:
    """Add (or with a negative delta, deduct) points from a user's total.

    The total never drops below zero. A zero delta is a no-op.

    Args:
        user_id: Account to credit
        delta: Points to add; negative values deduct

    Returns:
        AccountingResult describing the new total, or the failure
    """
    with span("points_service.add_points"):
        try:
            async with user_locks.account_mutation(user_id):
                account = await state_store.read_account(user_id=user_id)
                if delta == 0:
                    return unchanged_result(account)
                return await commit_points(
                    account=account,
                    delta=delta,
                    notification=PointsNotification.for_delta(user_id=user_id, delta=delta),
                )
        except ACCOUNTING_ERRORS as e:
            return failed_result(user_id=user_id, error=e)
