"""Task and subtask domain models."""

import json
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


MAX_TITLE_LENGTH = 200


class ItemKind(StrEnum):
    """Whether a to-do item is a top-level task or a subtask."""

    TASK = "task"
    SUBTASK = "subtask"

    @property
    def collection(self) -> str:
        return "tasks" if self is ItemKind.TASK else "subtasks"


class TaskPriority(StrEnum):
    """Task priority levels."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class TaskItem(BaseModel):
    """A task or subtask, as far as point accounting is concerned."""

    id: str = Field(..., description="Unique item ID")
    user_id: str = Field(..., description="Owner of the item")
    kind: ItemKind = Field(default=ItemKind.TASK)
    parent_task_id: str | None = Field(default=None, description="Parent task (subtasks only)")
    title: str = Field(default="")
    description: str = Field(default="")
    date: str = Field(..., description="Scheduled date-time in ISO 8601 format")
    priority: TaskPriority = Field(default=TaskPriority.LOW)
    tags: list[str] = Field(default_factory=list)
    completed: bool = Field(default=False)

    @field_validator("completed", mode="before")
    @classmethod
    def coerce_completed(cls, v: object) -> bool:
        """Stored flags may be 0/1 integers or null."""
        return bool(v)

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v: object) -> object:
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v


class TaskCreate(BaseModel):
    """Pydantic model for creating a task or subtask record."""

    title: str = Field(..., description="Item title")
    description: str = Field(default="")
    date: str = Field(..., description="Scheduled date-time in ISO 8601 format")
    priority: TaskPriority = Field(default=TaskPriority.LOW)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        if len(v) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
        return v

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: list[str]) -> list[str]:
        """Drop blank tags."""
        return [tag.strip() for tag in v if tag.strip()]
