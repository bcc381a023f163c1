"""Point event and observable state models."""

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.core.config import Constants


class NotificationCategory(StrEnum):
    """Toast style shown to the user."""

    SUCCESS = "success"
    ERROR = "error"


class PointsEventKind(StrEnum):
    """What caused a point change."""

    DAILY_LOGIN = "daily_login"
    CHALLENGE_COMPLETE = "challenge_complete"
    CHALLENGE_UNCOMPLETE = "challenge_uncomplete"
    POINTS_GAINED = "points_gained"
    POINTS_LOST = "points_lost"


class PointsNotification(BaseModel):
    """User-facing description of one point change."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    category: NotificationCategory
    kind: PointsEventKind
    title: str
    message: str
    delta: int

    @classmethod
    def for_daily_login(cls, *, user_id: str, points: int) -> "PointsNotification":
        return cls(
            user_id=user_id,
            category=NotificationCategory.SUCCESS,
            kind=PointsEventKind.DAILY_LOGIN,
            title="Points Earned!",
            message=f"🎉 You've earned {points} points for daily login!",
            delta=points,
        )

    @classmethod
    def for_delta(cls, *, user_id: str, delta: int) -> "PointsNotification":
        """Classify a point change by its exact magnitude.

        Plus or minus the combined challenge award gets the challenge message;
        every other value gets the generic gain/loss message.
        """
        challenge_points = Constants.DAILY_CHALLENGE_COMPLETE_POINTS
        task_points = Constants.TASK_COMPLETION_POINTS
        bonus_points = Constants.DAILY_CHALLENGE_BONUS_POINTS

        if delta == challenge_points:
            return cls(
                user_id=user_id,
                category=NotificationCategory.SUCCESS,
                kind=PointsEventKind.CHALLENGE_COMPLETE,
                title="Daily Challenge Complete!",
                message=(
                    f"🎉 You earned a total of {task_points} + {bonus_points} points "
                    "for completing the daily challenge!"
                ),
                delta=delta,
            )
        if delta == -challenge_points:
            return cls(
                user_id=user_id,
                category=NotificationCategory.ERROR,
                kind=PointsEventKind.CHALLENGE_UNCOMPLETE,
                title="Daily Challenge Uncompleted!",
                message=(
                    f"⚠️ You lost a total of {task_points} + {bonus_points} points "
                    "for uncompleting the daily challenge!"
                ),
                delta=delta,
            )
        if delta > 0:
            return cls(
                user_id=user_id,
                category=NotificationCategory.SUCCESS,
                kind=PointsEventKind.POINTS_GAINED,
                title="Points Update!",
                message=f"🎉 You've earned {delta} points!",
                delta=delta,
            )
        return cls(
            user_id=user_id,
            category=NotificationCategory.ERROR,
            kind=PointsEventKind.POINTS_LOST,
            title="Points Update!",
            message=f"⚠️ You've lost {abs(delta)} points!",
            delta=delta,
        )


class PointsState(BaseModel):
    """Read-only snapshot of a signed-in user's points, streak and challenge."""

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    points: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    challenge_progress: int = Field(default=0, ge=0, le=Constants.DAILY_CHALLENGE_GOAL)
    last_login_date: date | None = None
