"""Task repository: CRUD and queries over the tasks table.

Functions are stateless; each borrows one pooled connection for the duration
of the call and returns domain models or raises a tasktracker error.
"""

import logging

import aiosqlite

from tasktracker.core.db_client import ConnectionPool, sql_bump_timestamp, to_db_timestamp
from tasktracker.core.errors import TaskNotFoundError
from tasktracker.core.logging import span
from tasktracker.core.query_builder import UpdateBuilder
from tasktracker.domain.task import CreateTask, Task, TaskPriority, TaskStatus, UpdateTask


logger = logging.getLogger(__name__)

# Newest first; id breaks ties between rows created in the same millisecond
_NEWEST_FIRST = "ORDER BY created_at DESC, id DESC"


def _row_to_task(row: aiosqlite.Row) -> Task:
    return Task.model_validate(dict(row))


async def _fetch_task(conn: aiosqlite.Connection, task_id: int) -> Task:
    cursor = await conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
    row = await cursor.fetchone()
    if row is None:
        raise TaskNotFoundError(task_id)
    return _row_to_task(row)


async def create(pool: ConnectionPool, *, task: CreateTask) -> Task:
    """Insert a task and return the stored row.

    Args:
        pool: Connection pool
        task: Task payload

    Returns:
        The task with its generated id and timestamps

    Raises:
        DatabaseError: On constraint violation (e.g. unknown user_id) or storage failure
    """
    with span("task_repository.create", user_id=task.user_id):
        async with pool.acquire(operation="create_task") as conn:
            cursor = await conn.execute(
                """
                INSERT INTO tasks (title, description, status, priority, due_date, user_id)
                VALUES (?, ?, ?, ?, ?, ?)
                RETURNING *
                """,
                (
                    task.title,
                    task.description,
                    task.status.value,
                    task.priority.value,
                    to_db_timestamp(task.due_date),
                    task.user_id,
                ),
            )
            row = await cursor.fetchone()
            await cursor.close()
            await conn.commit()

        created = _row_to_task(row)
        logger.info("Created task", extra={"task_id": created.id, "user_id": created.user_id})
        return created


async def find_by_id(pool: ConnectionPool, *, task_id: int) -> Task:
    """Fetch a task by id.

    Raises:
        TaskNotFoundError: If no task has this id
        DatabaseError: On storage failure
    """
    with span("task_repository.find_by_id", task_id=task_id):
        async with pool.acquire(operation="find_task") as conn:
            return await _fetch_task(conn, task_id)


async def _list_tasks(pool: ConnectionPool, operation: str, where: str, params: tuple[object, ...]) -> list[Task]:
    async with pool.acquire(operation=operation) as conn:
        cursor = await conn.execute(f"SELECT * FROM tasks WHERE {where} {_NEWEST_FIRST}", params)  # noqa: S608 - where clauses are module constants
        rows = await cursor.fetchall()
    return [_row_to_task(row) for row in rows]


async def find_by_user(pool: ConnectionPool, *, user_id: int) -> list[Task]:
    """All tasks owned by a user, newest first. Empty list if there are none."""
    with span("task_repository.find_by_user", user_id=user_id):
        return await _list_tasks(pool, "find_tasks_by_user", "user_id = ?", (user_id,))


async def find_by_user_and_status(pool: ConnectionPool, *, user_id: int, status: TaskStatus) -> list[Task]:
    """A user's tasks with the given status, newest first."""
    with span("task_repository.find_by_user_and_status", user_id=user_id, status=status.value):
        return await _list_tasks(
            pool,
            "find_tasks_by_user_and_status",
            "user_id = ? AND status = ?",
            (user_id, status.value),
        )


async def find_by_user_and_priority(pool: ConnectionPool, *, user_id: int, priority: TaskPriority) -> list[Task]:
    """A user's tasks with the given priority, newest first."""
    with span("task_repository.find_by_user_and_priority", user_id=user_id, priority=priority.value):
        return await _list_tasks(
            pool,
            "find_tasks_by_user_and_priority",
            "user_id = ? AND priority = ?",
            (user_id, priority.value),
        )


def _task_update_values(task: UpdateTask) -> dict[str, object]:
    values: dict[str, object] = {}
    for column, value in task.provided_fields().items():
        if column == "due_date":
            values[column] = to_db_timestamp(value)
        elif isinstance(value, TaskStatus | TaskPriority):
            values[column] = value.value
        else:
            values[column] = value
    return values


async def update(pool: ConnectionPool, *, task_id: int, task: UpdateTask) -> Task:
    """Apply a partial update and return the updated task.

    Only explicitly provided fields are written; ``updated_at`` always moves
    forward, so an empty payload still bumps the timestamp.

    Args:
        pool: Connection pool
        task_id: Task to update
        task: Partial update payload

    Returns:
        The task as stored after the update

    Raises:
        TaskNotFoundError: If no task has this id
        DatabaseError: On storage failure, including lock timeouts
    """
    with span("task_repository.update", task_id=task_id):
        async with pool.acquire(operation="update_task") as conn:
            await _fetch_task(conn, task_id)

            builder = UpdateBuilder("tasks")
            builder.set_many(_task_update_values(task))
            builder.touch("updated_at", sql_bump_timestamp("updated_at"))
            query, params = builder.build(where_column="id", where_value=task_id)

            await conn.execute(query, params)
            await conn.commit()

            updated = await _fetch_task(conn, task_id)

        logger.info("Updated task", extra={"task_id": task_id, "columns": builder.columns})
        return updated


async def delete(pool: ConnectionPool, *, task_id: int) -> None:
    """Delete a task.

    Existence is judged by the affected row count, not a prior lookup.

    Raises:
        TaskNotFoundError: If no row was deleted
        DatabaseError: On storage failure
    """
    with span("task_repository.delete", task_id=task_id):
        async with pool.acquire(operation="delete_task") as conn:
            cursor = await conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await conn.commit()
            deleted = cursor.rowcount

        if deleted == 0:
            raise TaskNotFoundError(task_id)

        logger.info("Deleted task", extra={"task_id": task_id})


async def count_by_user(pool: ConnectionPool, *, user_id: int) -> int:
    """Number of tasks owned by a user (0 if none)."""
    with span("task_repository.count_by_user", user_id=user_id):
        async with pool.acquire(operation="count_tasks_by_user") as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM tasks WHERE user_id = ?", (user_id,))
            row = await cursor.fetchone()
        return int(row[0])


async def belongs_to_user(pool: ConnectionPool, *, task_id: int, user_id: int) -> bool:
    """True iff the task exists and is owned by the user. Never raises not-found."""
    with span("task_repository.belongs_to_user", task_id=task_id, user_id=user_id):
        async with pool.acquire(operation="check_task_owner") as conn:
            cursor = await conn.execute(
                "SELECT COUNT(*) FROM tasks WHERE id = ? AND user_id = ?",
                (task_id, user_id),
            )
            row = await cursor.fetchone()
        return row[0] > 0
