"""Unit tests for the error taxonomy."""

import pydantic
import pytest

from tasktracker.core.errors import (
    AppError,
    DatabaseError,
    ErrorKind,
    InternalError,
    InvalidCredentialsError,
    PoolTimeoutError,
    TaskNotFoundError,
    UnauthorizedError,
    UsernameExistsError,
    UserNotFoundError,
    ValidationError,
    classify_error_with_response,
    is_auth,
    is_not_found,
    is_validation,
    validation_error_from_pydantic,
)
from tasktracker.domain.task import CreateTask


ALL_ERRORS = [
    DatabaseError("disk I/O error"),
    TaskNotFoundError(7),
    UserNotFoundError(3),
    UsernameExistsError("alice"),
    InvalidCredentialsError(),
    ValidationError("title too long"),
    UnauthorizedError("not your task"),
    InternalError("boom"),
]


@pytest.mark.unit
class TestErrorKinds:
    """Each error class carries exactly one kind."""

    def test_every_kind_has_an_error_class(self):
        assert {error.kind for error in ALL_ERRORS} == set(ErrorKind)

    def test_messages(self):
        assert str(TaskNotFoundError(7)) == "Task not found with id: 7"
        assert str(UserNotFoundError(3)) == "User not found with id: 3"
        assert str(UsernameExistsError("alice")) == "Username already exists: alice"
        assert str(InvalidCredentialsError()) == "Invalid username or password"
        assert str(ValidationError("bad")) == "Validation error: bad"
        assert str(UnauthorizedError("nope")) == "Unauthorized: nope"
        assert str(InternalError("boom")) == "Internal server error: boom"
        assert str(DatabaseError("locked")) == "Database error: locked"

    def test_not_found_errors_keep_their_id(self):
        assert TaskNotFoundError(42).task_id == 42
        assert UserNotFoundError(9).user_id == 9

    def test_pool_timeout_is_a_database_error(self):
        error = PoolTimeoutError("timed out")
        assert isinstance(error, DatabaseError)
        assert error.kind == ErrorKind.DATABASE


@pytest.mark.unit
class TestPredicates:
    """Tests for is_not_found, is_validation and is_auth."""

    @pytest.mark.parametrize("error", ALL_ERRORS, ids=lambda e: e.kind.value)
    def test_predicates_partition_kinds(self, error: AppError):
        expected_not_found = error.kind in {ErrorKind.TASK_NOT_FOUND, ErrorKind.USER_NOT_FOUND}
        expected_validation = error.kind == ErrorKind.VALIDATION
        expected_auth = error.kind in {ErrorKind.INVALID_CREDENTIALS, ErrorKind.UNAUTHORIZED}

        assert error.is_not_found() is expected_not_found
        assert error.is_validation() is expected_validation
        assert error.is_auth() is expected_auth
        assert is_not_found(error) is expected_not_found
        assert is_validation(error) is expected_validation
        assert is_auth(error) is expected_auth

    def test_foreign_exceptions_match_nothing(self):
        error = KeyError("Task not found")
        assert not is_not_found(error)
        assert not is_validation(error)
        assert not is_auth(error)


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    """Tests for classify_error_with_response."""

    def test_not_found_maps_to_404(self):
        response = classify_error_with_response(TaskNotFoundError(5))
        assert response.status_code == 404
        assert response.kind == ErrorKind.TASK_NOT_FOUND
        assert response.message == "Task not found with id: 5"

    def test_validation_maps_to_400(self):
        assert classify_error_with_response(ValidationError("bad")).status_code == 400

    def test_auth_maps_to_401(self):
        assert classify_error_with_response(InvalidCredentialsError()).status_code == 401
        assert classify_error_with_response(UnauthorizedError("no")).status_code == 401

    def test_database_error_maps_to_500_without_leaking_details(self):
        response = classify_error_with_response(DatabaseError("/var/db/tasks.db is locked"))
        assert response.status_code == 500
        assert "locked" not in response.message

    def test_unknown_exception_maps_to_internal(self):
        response = classify_error_with_response(RuntimeError("kaboom"))
        assert response.status_code == 500
        assert response.kind == ErrorKind.INTERNAL
        assert "kaboom" not in response.message


@pytest.mark.unit
def test_validation_error_from_pydantic_names_the_field():
    with pytest.raises(pydantic.ValidationError) as exc_info:
        CreateTask(title="x" * 201, description="", user_id=1)

    error = validation_error_from_pydantic(exc_info.value)

    assert isinstance(error, ValidationError)
    assert error.is_validation()
    assert "title" in error.message
