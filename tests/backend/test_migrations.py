"""Tests for the schema migration helpers."""
from __future__ import annotations

from sqlalchemy import create_engine, inspect

from backend.app.migrations.versions import initial


def test_initial_migration_creates_and_drops_tables() -> None:
    engine = create_engine("sqlite://")
    with engine.begin() as connection:
        initial.upgrade(connection)
        tables = set(inspect(connection).get_table_names())
        assert {"users", "posts"} <= tables
        columns = {column["name"] for column in inspect(connection).get_columns("posts")}
        assert {"id", "content", "user_id", "deleted", "created_at"} <= columns

        initial.downgrade(connection)
        assert inspect(connection).get_table_names() == []
    engine.dispose()
