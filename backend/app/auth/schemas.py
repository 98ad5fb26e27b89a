"""Pydantic schemas for authentication APIs."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from backend.app.auth.models import User

MAX_PASSWORD_BYTES = 72


def password_fits_hash(password: str) -> bool:
    """Return whether bcrypt would hash ``password`` without truncating it."""

    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


class _FrozenModel(BaseModel):
    """Base immutable schema."""

    model_config = ConfigDict(frozen=True)


class UserView(_FrozenModel):
    """Public user representation; never carries the password hash."""

    id: int
    username: str
    email: EmailStr
    full_name: str
    profile_image_url: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserView":
        """Convert an ORM user into its public view."""

        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            profile_image_url=user.profile_image_url,
            bio=user.bio,
            created_at=user.created_at,
        )


class AuthResponse(_FrozenModel):
    """Tokens issued after registration, login or refresh."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    token_type: str = Field("bearer", min_length=1)
    expires_in: int = Field(..., ge=1)
    user: UserView


class RegisterRequest(BaseModel):
    """Registration input payload."""

    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("username", "full_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("username")
    @classmethod
    def _reject_numeric_username(cls, value: str) -> str:
        # Tokens address users by numeric id, so usernames must never look like one.
        if value.isdigit():
            raise ValueError("username cannot be purely numeric")
        return value

    @field_validator("password")
    @classmethod
    def _limit_password_bytes(cls, value: str) -> str:
        if not password_fits_hash(value):
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class LoginRequest(BaseModel):
    """Login request payload; either ``email`` or ``username`` identifies the account.

    Fields are unconstrained here; the service validates them and reports
    every failure as invalid credentials.
    """

    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def login_identifier(self) -> Optional[str]:
        """Return the email when supplied, otherwise the username."""

        if self.email is not None and self.email.strip():
            return self.email.strip()
        if self.username is not None and self.username.strip():
            return self.username.strip()
        return None


class RefreshRequest(BaseModel):
    """Refresh token request payload."""

    refresh_token: str = Field(..., min_length=1)


__all__ = [
    "MAX_PASSWORD_BYTES",
    "AuthResponse",
    "LoginRequest",
    "RefreshRequest",
    "RegisterRequest",
    "UserView",
    "password_fits_hash",
]
