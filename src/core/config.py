"""Configuration management for taskstreak."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="./data/taskstreak.db", description="SQLite database file path")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="production", description="Deployment environment reported to Logfire")

    # Redis Configuration (optional)
    redis_url: str | None = Field(default=None, description="Redis connection URL (e.g., redis://localhost:6379)")

    # Accounting Configuration
    store_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Deadline for a single accounting step against the store (in seconds)"
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # Daily Login
    DAILY_LOGIN_POINTS: int = 10
    REGISTRATION_POINTS: int = 10

    # Daily Challenge
    DAILY_CHALLENGE_GOAL: int = 3
    TASK_COMPLETION_POINTS: int = 20
    DAILY_CHALLENGE_BONUS_POINTS: int = 50
    DAILY_CHALLENGE_COMPLETE_POINTS: int = TASK_COMPLETION_POINTS + DAILY_CHALLENGE_BONUS_POINTS  # 70

    # Flat Task Rewards
    TASK_CREATED_POINTS: int = 10
    TASK_DELETED_PENALTY: int = 10
    SUBTASK_DELETED_PENALTY: int = 5

    # Leaderboard
    LEADERBOARD_TOP_N: int = 10
    CACHE_TTL_LEADERBOARD_SECONDS: int = 60  # 1 minute for leaderboard cache

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500  # Upper bound for per-user task lists

    # Redis Configuration
    REDIS_MAX_CONNECTIONS: int = 10  # Maximum connections in Redis connection pool
    REDIS_INVALIDATION_QUEUE_MAXLEN: int = 1000  # Max items in Redis invalidation queue

    # Notification Channel
    NOTIFICATION_QUEUE_MAXSIZE: int = 100  # Per-subscriber buffer before oldest toasts are dropped


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
