"""User domain models."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from tasktracker.core.config import constants


class UserResponse(BaseModel):
    """User projection without credentials; the only user form that leaves the data layer."""

    id: int
    username: str
    email: str | None = None
    created_at: datetime


class User(BaseModel):
    """User as stored in the users table."""

    id: int = Field(..., description="Store-assigned user ID")
    username: str = Field(..., description="Unique login name")
    password_hash: str = Field(..., repr=False, description="Password hash, never exposed externally")
    email: str | None = Field(default=None, description="Optional unique email address")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")

    def to_response(self) -> UserResponse:
        """Drop the password hash for external consumption."""
        return UserResponse(
            id=self.id,
            username=self.username,
            email=self.email,
            created_at=self.created_at,
        )


def _validate_username(v: str) -> str:
    v = v.strip()
    if len(v) < constants.MIN_USERNAME_LENGTH:
        raise ValueError(f"Username too short (min {constants.MIN_USERNAME_LENGTH} characters)")
    if len(v) > constants.MAX_USERNAME_LENGTH:
        raise ValueError(f"Username too long (max {constants.MAX_USERNAME_LENGTH} characters)")
    return v


class CreateUser(BaseModel):
    """Payload for inserting a user. Hashing happens before this model is built."""

    username: str = Field(..., description="Unique login name")
    password_hash: str = Field(..., repr=False, min_length=1, description="Already-hashed password")
    email: str | None = Field(default=None, description="Optional email address")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username length after trimming whitespace."""
        return _validate_username(v)


class UpdateUser(BaseModel):
    """Partial update payload; ``email=None`` clears the email."""

    username: str | None = None
    email: str | None = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Username cannot be null; omit it to leave the value unchanged")
        return _validate_username(v)

    def provided_fields(self) -> dict[str, object]:
        """Return the explicitly provided fields in column order."""
        return {name: getattr(self, name) for name in type(self).model_fields if name in self.model_fields_set}
