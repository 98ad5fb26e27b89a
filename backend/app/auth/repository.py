"""Repository handling persistence for user accounts."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.auth.models import User


def normalize_email(email: str) -> str:
    """Return the canonical stored form of an email address."""

    return email.strip().lower()


def normalize_username(username: str) -> str:
    """Return the canonical stored form of a username."""

    return username.strip()


class UserRepository:
    """Provide database access helpers for user accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Return the underlying SQLAlchemy session."""

        return self._session

    async def exists_by_username(self, username: str) -> bool:
        """Return whether a user with ``username`` exists."""

        stmt = select(exists().where(User.username == normalize_username(username)))
        return bool(await self._session.scalar(stmt))

    async def exists_by_email(self, email: str) -> bool:
        """Return whether a user with ``email`` exists."""

        stmt = select(exists().where(User.email == normalize_email(email)))
        return bool(await self._session.scalar(stmt))

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Retrieve a user record by username."""

        result = await self._session.execute(
            select(User).where(User.username == normalize_username(username))
        )
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Retrieve a user record by email address."""

        result = await self._session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Retrieve a user record by identifier."""

        return await self._session.get(User, user_id)

    async def save(self, user: User) -> User:
        """Stage ``user`` for persistence and flush so generated ids are populated."""

        user.username = normalize_username(user.username)
        user.email = normalize_email(user.email)
        self._session.add(user)
        await self._session.flush()
        return user

    async def commit(self) -> None:
        """Commit the current transaction."""

        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""

        await self._session.rollback()


__all__ = ["UserRepository", "normalize_email", "normalize_username"]
