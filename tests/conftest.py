"""Pytest configuration and shared fixtures."""

import uuid
from collections.abc import AsyncIterator
from pathlib import Path

import logfire
import pytest

from tasktracker.core.db_client import ConnectionPool, create_pool
from tasktracker.core.schema import run_migrations
from tasktracker.domain.task import CreateTask, Task
from tasktracker.domain.user import CreateUser, User
from tasktracker.repositories import task_repository, user_repository


@pytest.fixture(scope="session", autouse=True)
def _configure_logfire() -> None:
    """Keep spans local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of a not-yet-created database file."""
    return tmp_path / "data" / "tasks.db"


@pytest.fixture
def database_url(db_path: Path) -> str:
    return f"sqlite:{db_path}"


@pytest.fixture
async def pool(database_url: str) -> AsyncIterator[ConnectionPool]:
    """Open, migrated pool on a fresh database file."""
    pool = await create_pool(database_url)
    await run_migrations(pool)
    yield pool
    await pool.close()


@pytest.fixture
async def user(pool: ConnectionPool) -> User:
    return await user_repository.create(pool, user=CreateUser(username="alice", password_hash="hash$alice"))


@pytest.fixture
async def other_user(pool: ConnectionPool) -> User:
    return await user_repository.create(
        pool, user=CreateUser(username="bob", password_hash="hash$bob", email="bob@example.com")
    )


@pytest.fixture
def task_factory(pool: ConnectionPool, user: User):
    """Factory for creating tasks with custom data.

    Usage:
        task = await task_factory(title="Write report", priority=TaskPriority.HIGH)
    """

    async def _create_task(**kwargs) -> Task:
        task_data = {
            "title": kwargs.pop("title", f"Task {uuid.uuid4().hex[:8]}"),
            "description": kwargs.pop("description", "A test task"),
            "user_id": kwargs.pop("user_id", user.id),
            **kwargs,
        }
        return await task_repository.create(pool, task=CreateTask(**task_data))

    return _create_task
