"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel

from src.domain.account import UserAccount
from src.domain.points import PointsNotification


class AccountingResult(BaseModel):
    """Outcome of one accounting operation.

    ``success`` is False only when the store could not be read or written;
    ``changed`` is False for no-ops such as toggling an item to the state it
    already has or logging in twice on the same day.
    """

    user_id: str
    success: bool
    changed: bool = False
    delta: int = 0
    points: int | None = None
    streak: int | None = None
    challenge_progress: int | None = None
    notification: PointsNotification | None = None
    leaderboard_synced: bool = False
    error: str | None = None


class LoginEvaluation(BaseModel):
    """Pure result of evaluating a login against an account."""

    account: UserAccount
    points_delta: int
    notification: PointsNotification | None = None

    @property
    def changed(self) -> bool:
        return self.notification is not None


class LeaderboardEntry(BaseModel):
    """User entry in the points leaderboard."""

    user_id: str
    name: str | None = None
    points: int


class LeaderboardStanding(BaseModel):
    """Rank and points of one user on the leaderboard."""

    user_id: str
    rank: int
    points: int
    total_entries: int
