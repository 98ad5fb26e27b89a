"""Initial migration creating the users and posts tables."""
from __future__ import annotations

from sqlalchemy.engine import Connection

from backend.app.auth.models import Base
from backend.app.posts import models as post_models  # noqa: F401 - registers the posts table


def upgrade(connection: Connection) -> None:
    """Create all application tables."""

    Base.metadata.create_all(connection)


def downgrade(connection: Connection) -> None:
    """Drop all application tables."""

    Base.metadata.drop_all(connection)


__all__ = ["upgrade", "downgrade"]
