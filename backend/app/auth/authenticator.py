"""Password hashing and credential verification."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from passlib.context import CryptContext

from backend.app.auth.models import User
from backend.app.auth.repository import UserRepository

LOGGER = logging.getLogger(__name__)


class BadCredentialsError(RuntimeError):
    """Raised when an identifier/password pair does not match a stored account."""


class PasswordHasher:
    """One-way salted password hashing backed by bcrypt."""

    def __init__(self, pwd_context: Optional[CryptContext] = None, *, rounds: int = 12) -> None:
        self._pwd_context = pwd_context or CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds
        )

    def hash(self, password: str) -> str:
        """Hash the provided password using bcrypt."""

        return self._pwd_context.hash(password)

    def verify(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        """Verify whether a plaintext password matches a stored hash."""

        if not hashed_password:
            return False
        return self._pwd_context.verify(plain_password, hashed_password)


class CredentialsAuthenticator(Protocol):
    """Verify a login identifier and password."""

    async def authenticate(self, identifier: str, password: str) -> User:
        """Return the matching user or raise :class:`BadCredentialsError`."""


class PasswordAuthenticator:
    """Check credentials against hashed passwords in the user store."""

    def __init__(self, repository: UserRepository, hasher: PasswordHasher) -> None:
        self._repository = repository
        self._hasher = hasher

    async def authenticate(self, identifier: str, password: str) -> User:
        """Verify ``password`` for the user registered under ``identifier``.

        ``identifier`` is tried as an email first, then as a username. Unknown
        accounts and wrong passwords fail identically.
        """

        user = await self._repository.get_user_by_email(identifier)
        if user is None:
            user = await self._repository.get_user_by_username(identifier)
        if user is None or not self._hasher.verify(password, user.hashed_password):
            LOGGER.info("Credential check failed")
            raise BadCredentialsError("Bad credentials")
        return user


__all__ = [
    "BadCredentialsError",
    "CredentialsAuthenticator",
    "PasswordAuthenticator",
    "PasswordHasher",
]
