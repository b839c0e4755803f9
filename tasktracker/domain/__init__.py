"""Domain models and DTOs."""

from tasktracker.domain.task import CreateTask, Task, TaskPriority, TaskStatus, UpdateTask
from tasktracker.domain.user import CreateUser, UpdateUser, User, UserResponse


__all__ = [
    "CreateTask",
    "CreateUser",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "UpdateTask",
    "UpdateUser",
    "User",
    "UserResponse",
]
