"""Daily login accounting: once-per-day bonus and consecutive-day streaks."""

import logging
from datetime import date

from src.core import clock, state_store
from src.core.config import Constants
from src.core.logging import log_with_user_context, span
from src.core.user_locks import user_locks
from src.domain.account import UserAccount
from src.domain.points import PointsNotification
from src.models.service_models import AccountingResult, LoginEvaluation
from src.services.points_service import ACCOUNTING_ERRORS, commit_points, failed_result, unchanged_result


logger = logging.getLogger(__name__)


def next_streak(*, streak: int, last_login_date: date | None, today: date) -> int:
    """Streak after logging in today: +1 after exactly one day, otherwise a fresh 1."""
    if last_login_date is not None and clock.days_between(last_login_date, today) == 1:
        return streak + 1
    return 1


def evaluate_login(account: UserAccount, today: date) -> LoginEvaluation:
    """Work out the effect of a login on the given day without touching the store.

    Args:
        account: Account as last persisted
        today: Local calendar date of the login

    Returns:
        LoginEvaluation with the updated account, the point delta and the
        toast to show; delta 0 and no toast if today was already credited
    """
    if account.last_login_date == today:
        return LoginEvaluation(account=account, points_delta=0)

    bonus = Constants.DAILY_LOGIN_POINTS
    updated = account.model_copy(
        update={
            "points": max(account.points + bonus, 0),
            "streak": next_streak(streak=account.streak, last_login_date=account.last_login_date, today=today),
            "last_login_date": today,
            "challenge_progress": 0,
        }
    )
    return LoginEvaluation(
        account=updated,
        points_delta=bonus,
        notification=PointsNotification.for_daily_login(user_id=account.id, points=bonus),
    )


async def record_daily_login(*, user_id: str) -> AccountingResult:
    """Grant the daily login bonus if the user has not received it today.

    Points, streak, last login date and the reset challenge progress are
    written in a single update. Nothing is retried on failure; because
    last_login_date did not advance, the next call grants the bonus instead.

    Args:
        user_id: Account that just signed in

    Returns:
        AccountingResult; changed is False when today was already credited
    """
    with span("login_service.record_daily_login"):
        try:
            async with user_locks.account_mutation(user_id):
                account = await state_store.read_account(user_id=user_id)
                evaluation = evaluate_login(account, clock.local_today())

                if not evaluation.changed:
                    logger.debug("Daily login already credited for user %s", user_id)
                    return unchanged_result(account)

                result = await commit_points(
                    account=account,
                    delta=evaluation.points_delta,
                    extra_fields={
                        "streak": evaluation.account.streak,
                        "last_login_date": evaluation.account.last_login_date.isoformat(),
                        "challenge_progress": 0,
                    },
                    notification=evaluation.notification,
                )
                log_with_user_context(
                    logger, "info", "Daily login recorded", user_id=user_id, streak=evaluation.account.streak
                )
                return result
        except ACCOUNTING_ERRORS as e:
            return failed_result(user_id=user_id, error=e)
