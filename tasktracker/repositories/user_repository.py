"""User repository: account records backing task ownership."""

import logging

import aiosqlite

from tasktracker.core.db_client import ConnectionPool, sql_bump_timestamp
from tasktracker.core.errors import UsernameExistsError, UserNotFoundError, ValidationError
from tasktracker.core.logging import span
from tasktracker.core.query_builder import UpdateBuilder
from tasktracker.domain.user import CreateUser, UpdateUser, User


logger = logging.getLogger(__name__)


def _row_to_user(row: aiosqlite.Row) -> User:
    return User.model_validate(dict(row))


async def _fetch_user(conn: aiosqlite.Connection, user_id: int) -> User:
    cursor = await conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    row = await cursor.fetchone()
    if row is None:
        raise UserNotFoundError(user_id)
    return _row_to_user(row)


def _translate_unique_violation(error: aiosqlite.IntegrityError, *, username: str | None) -> Exception:
    """Map UNIQUE failures on users to domain errors; anything else stays a storage error."""
    message = str(error)
    if "users.username" in message and username is not None:
        return UsernameExistsError(username)
    if "users.email" in message:
        return ValidationError("Email already registered")
    return error


async def create(pool: ConnectionPool, *, user: CreateUser) -> User:
    """Insert a user and return the stored row.

    Raises:
        UsernameExistsError: If the username is taken
        ValidationError: If the email is already registered
        DatabaseError: On any other storage failure
    """
    with span("user_repository.create"):
        async with pool.acquire(operation="create_user") as conn:
            try:
                cursor = await conn.execute(
                    "INSERT INTO users (username, password_hash, email) VALUES (?, ?, ?) RETURNING *",
                    (user.username, user.password_hash, user.email),
                )
                row = await cursor.fetchone()
                await cursor.close()
                await conn.commit()
            except aiosqlite.IntegrityError as e:
                logger.warning("create_user_conflict", extra={"username": user.username, "error": str(e)})
                translated = _translate_unique_violation(e, username=user.username)
                if translated is e:
                    raise
                raise translated from e

        created = _row_to_user(row)
        logger.info("Created user", extra={"user_id": created.id})
        return created


async def find_by_id(pool: ConnectionPool, *, user_id: int) -> User:
    """Fetch a user by id.

    Raises:
        UserNotFoundError: If no user has this id
    """
    with span("user_repository.find_by_id", user_id=user_id):
        async with pool.acquire(operation="find_user") as conn:
            return await _fetch_user(conn, user_id)


async def find_by_username(pool: ConnectionPool, *, username: str) -> User | None:
    """Return the user with this username, or None."""
    with span("user_repository.find_by_username"):
        async with pool.acquire(operation="find_user_by_username") as conn:
            cursor = await conn.execute("SELECT * FROM users WHERE username = ?", (username,))
            row = await cursor.fetchone()
        return _row_to_user(row) if row is not None else None


async def username_exists(pool: ConnectionPool, *, username: str) -> bool:
    with span("user_repository.username_exists"):
        async with pool.acquire(operation="check_username") as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM users WHERE username = ?", (username,))
            row = await cursor.fetchone()
        return row[0] > 0


async def update(pool: ConnectionPool, *, user_id: int, user: UpdateUser) -> User:
    """Apply a partial update; ``updated_at`` is always refreshed.

    Raises:
        UserNotFoundError: If no user has this id
        UsernameExistsError: If the new username is taken
        ValidationError: If the new email is already registered
    """
    with span("user_repository.update", user_id=user_id):
        async with pool.acquire(operation="update_user") as conn:
            await _fetch_user(conn, user_id)

            builder = UpdateBuilder("users")
            builder.set_many(user.provided_fields())
            builder.touch("updated_at", sql_bump_timestamp("updated_at"))
            query, params = builder.build(where_column="id", where_value=user_id)

            try:
                await conn.execute(query, params)
                await conn.commit()
            except aiosqlite.IntegrityError as e:
                logger.warning("update_user_conflict", extra={"user_id": user_id, "error": str(e)})
                translated = _translate_unique_violation(e, username=user.username)
                if translated is e:
                    raise
                raise translated from e

            updated = await _fetch_user(conn, user_id)

        logger.info("Updated user", extra={"user_id": user_id, "columns": builder.columns})
        return updated


async def delete(pool: ConnectionPool, *, user_id: int) -> None:
    """Delete a user; their tasks go with them via ON DELETE CASCADE.

    Raises:
        UserNotFoundError: If no row was deleted
    """
    with span("user_repository.delete", user_id=user_id):
        async with pool.acquire(operation="delete_user") as conn:
            cursor = await conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            await conn.commit()
            deleted = cursor.rowcount

        if deleted == 0:
            raise UserNotFoundError(user_id)

        logger.info("Deleted user", extra={"user_id": user_id})
