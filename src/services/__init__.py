from src.services import (
    account_service,
    challenge_service,
    completion_service,
    leaderboard_service,
    login_service,
    points_service,
)


__all__ = [
    "account_service",
    "challenge_service",
    "completion_service",
    "leaderboard_service",
    "login_service",
    "points_service",
]
