"""Domain models and DTOs."""

from src.domain.account import UserAccount
from src.domain.points import NotificationCategory, PointsEventKind, PointsNotification, PointsState
from src.domain.task import ItemKind, TaskCreate, TaskItem, TaskPriority


__all__ = [
    "ItemKind",
    "NotificationCategory",
    "PointsEventKind",
    "PointsNotification",
    "PointsState",
    "TaskCreate",
    "TaskItem",
    "TaskPriority",
    "UserAccount",
]
