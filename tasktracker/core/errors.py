"""Error taxonomy shared by the repositories and the transport layers that consume them."""

from enum import StrEnum
from typing import ClassVar

import pydantic
from pydantic import BaseModel


class ErrorKind(StrEnum):
    """Closed set of error kinds the data layer can report."""

    DATABASE = "database"
    TASK_NOT_FOUND = "task_not_found"
    USER_NOT_FOUND = "user_not_found"
    USERNAME_EXISTS = "username_exists"
    INVALID_CREDENTIALS = "invalid_credentials"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


_NOT_FOUND_KINDS = frozenset({ErrorKind.TASK_NOT_FOUND, ErrorKind.USER_NOT_FOUND})
_AUTH_KINDS = frozenset({ErrorKind.INVALID_CREDENTIALS, ErrorKind.UNAUTHORIZED})


class AppError(Exception):
    """Base class for every error raised by tasktracker."""

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL

    def is_not_found(self) -> bool:
        return self.kind in _NOT_FOUND_KINDS

    def is_validation(self) -> bool:
        return self.kind == ErrorKind.VALIDATION

    def is_auth(self) -> bool:
        return self.kind in _AUTH_KINDS


class DatabaseError(AppError):
    """Wraps any underlying storage failure."""

    kind = ErrorKind.DATABASE

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Database error: {message}")


class PoolTimeoutError(DatabaseError):
    """No pooled connection became free within the acquire timeout."""


class TaskNotFoundError(AppError):
    kind = ErrorKind.TASK_NOT_FOUND

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found with id: {task_id}")


class UserNotFoundError(AppError):
    kind = ErrorKind.USER_NOT_FOUND

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User not found with id: {user_id}")


class UsernameExistsError(AppError):
    kind = ErrorKind.USERNAME_EXISTS

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Username already exists: {username}")


class InvalidCredentialsError(AppError):
    kind = ErrorKind.INVALID_CREDENTIALS

    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Validation error: {message}")


class UnauthorizedError(AppError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Unauthorized: {message}")


class InternalError(AppError):
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Internal server error: {message}")


def is_not_found(error: BaseException) -> bool:
    """Return True if the error is one of the NotFound kinds."""
    return isinstance(error, AppError) and error.is_not_found()


def is_validation(error: BaseException) -> bool:
    """Return True if the error is a validation failure."""
    return isinstance(error, AppError) and error.is_validation()


def is_auth(error: BaseException) -> bool:
    """Return True if the error is an authentication/authorization failure."""
    return isinstance(error, AppError) and error.is_auth()


def validation_error_from_pydantic(exc: pydantic.ValidationError) -> ValidationError:
    """Collapse a pydantic ValidationError into the taxonomy's ValidationError.

    Domain models validate their own fields; transports call this to report
    the failure without depending on pydantic's error structure.
    """
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "input"
        parts.append(f"{location}: {error['msg']}")
    return ValidationError("; ".join(parts))


class ErrorResponse(BaseModel):
    """Structured error response for transport layers."""

    kind: ErrorKind
    status_code: int
    message: str


HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_NOT_FOUND = 404
HTTP_SERVER_ERROR = 500


def classify_error_with_response(exception: BaseException) -> ErrorResponse:
    """Classify an error and return the status and message a transport should report.

    NotFound kinds map to 404, Validation to 400, Auth kinds to 401 and
    everything else, including non-AppError exceptions, to 500. Storage and
    internal failures never leak their underlying message.

    Args:
        exception: The exception raised by a repository call

    Returns:
        ErrorResponse with kind, status_code and user-facing message
    """
    if not isinstance(exception, AppError):
        return ErrorResponse(
            kind=ErrorKind.INTERNAL,
            status_code=HTTP_SERVER_ERROR,
            message="An unexpected error occurred.",
        )

    if exception.is_not_found():
        return ErrorResponse(kind=exception.kind, status_code=HTTP_NOT_FOUND, message=str(exception))

    if exception.is_validation():
        return ErrorResponse(kind=exception.kind, status_code=HTTP_BAD_REQUEST, message=str(exception))

    if exception.is_auth():
        return ErrorResponse(kind=exception.kind, status_code=HTTP_UNAUTHORIZED, message=str(exception))

    if exception.kind == ErrorKind.USERNAME_EXISTS:
        return ErrorResponse(kind=exception.kind, status_code=HTTP_SERVER_ERROR, message=str(exception))

    return ErrorResponse(
        kind=exception.kind,
        status_code=HTTP_SERVER_ERROR,
        message="An unexpected error occurred.",
    )
