"""Data access for tasks and users."""

from tasktracker.repositories import task_repository, user_repository


__all__ = ["task_repository", "user_repository"]
