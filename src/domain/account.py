"""User account domain model."""

from datetime import date

from pydantic import BaseModel, Field, field_validator

from src.core.config import Constants


ACCOUNT_SCHEMA_VERSION = 1


class UserAccount(BaseModel):
    """Points, streak and challenge state of one user.

    Stored records may predate some fields or carry nulls; every field has a
    default so older records load without migration:

    - points: 0; negative stored values clamp to 0
    - streak: 0
    - last_login_date: None (no login bonus granted yet)
    - challenge_progress: 0; clamped into [0, DAILY_CHALLENGE_GOAL]
    """

    id: str = Field(..., description="Unique user ID from the identity provider")
    name: str = Field(default="", description="Display name shown on the leaderboard")
    email: str = Field(default="", description="Login email")
    points: int = Field(default=0, ge=0, description="Total points, never negative")
    streak: int = Field(default=0, ge=0, description="Consecutive calendar days with a login bonus")
    last_login_date: date | None = Field(default=None, description="Day the last login bonus was granted")
    challenge_progress: int = Field(
        default=0,
        ge=0,
        le=Constants.DAILY_CHALLENGE_GOAL,
        description="Tasks completed today that count toward the daily challenge",
    )
    schema_version: int = Field(default=ACCOUNT_SCHEMA_VERSION)

    @field_validator("name", "email", mode="before")
    @classmethod
    def default_text(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("points", "streak", mode="before")
    @classmethod
    def clamp_non_negative(cls, v: object) -> int:
        """Treat missing values as 0 and clamp negatives to 0."""
        if v is None:
            return 0
        return max(int(v), 0)  # type: ignore[call-overload]

    @field_validator("challenge_progress", mode="before")
    @classmethod
    def clamp_progress(cls, v: object) -> int:
        """Treat missing progress as 0 and keep it inside the challenge bounds."""
        if v is None:
            return 0
        return min(max(int(v), 0), Constants.DAILY_CHALLENGE_GOAL)  # type: ignore[call-overload]

    @field_validator("last_login_date", mode="before")
    @classmethod
    def parse_login_date(cls, v: object) -> object:
        """Accept empty strings and full ISO timestamps, keeping the date part only."""
        if v in (None, ""):
            return None
        if isinstance(v, str):
            return v[:10]
        return v

    @field_validator("schema_version", mode="before")
    @classmethod
    def default_version(cls, v: object) -> object:
        return ACCOUNT_SCHEMA_VERSION if v is None else v
