"""Task domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from tasktracker.core.config import constants


class TaskStatus(StrEnum):
    """Task lifecycle status, persisted as its value."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(StrEnum):
    """Task priority, ordered LOW < MEDIUM < HIGH < URGENT.

    Ordering comes from an explicit rank table rather than the stored text,
    which would otherwise sort alphabetically.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank >= other.rank


_PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}


class Task(BaseModel):
    """Task as stored in the tasks table."""

    id: int = Field(..., description="Store-assigned task ID")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Current lifecycle status")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    due_date: datetime | None = Field(default=None, description="Optional deadline (UTC)")
    user_id: int = Field(..., description="Owning user ID")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")


class CreateTask(BaseModel):
    """Payload for inserting a task."""

    title: str = Field(..., max_length=constants.MAX_TITLE_LENGTH, description="Task title")
    description: str = Field(..., max_length=constants.MAX_DESCRIPTION_LENGTH, description="Task description")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Initial status")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Initial priority")
    due_date: datetime | None = Field(default=None, description="Optional deadline")
    user_id: int = Field(..., description="Owning user ID")


class UpdateTask(BaseModel):
    """Partial update payload.

    A field is touched only if it was explicitly provided (see
    ``model_fields_set``). Passing ``due_date=None`` clears the due date,
    omitting it leaves the stored value alone.
    """

    title: str | None = Field(default=None, max_length=constants.MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, max_length=constants.MAX_DESCRIPTION_LENGTH)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None

    @field_validator("title", "description", "status", "priority")
    @classmethod
    def reject_null(cls, v: object) -> object:
        """These columns are NOT NULL; only due_date may be cleared."""
        if v is None:
            raise ValueError("Field cannot be null; omit it to leave the value unchanged")
        return v

    def provided_fields(self) -> dict[str, object]:
        """Return the explicitly provided fields in column order."""
        return {name: getattr(self, name) for name in type(self).model_fields if name in self.model_fields_set}
