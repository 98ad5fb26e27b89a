"""FastAPI application factory for the Postboard backend."""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from backend.app.auth.authenticator import PasswordHasher
from backend.app.auth.models import Base
from backend.app.auth.router import router as auth_router
from backend.app.auth.tokens import TokenService
from backend.app.config import AppConfig, load_config
from backend.app.posts import models as post_models  # noqa: F401 - registers the posts table
from backend.app.posts.router import router as posts_router

LOGGER = logging.getLogger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""

    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Optional pre-loaded configuration. If omitted, config.yaml and
            the environment are loaded via :func:`load_config`.

    Returns:
        FastAPI: Configured FastAPI application.
    """

    resolved_config = config or load_config()
    app = FastAPI(title=resolved_config.app.name, version=resolved_config.app.version)
    app.state.app_config = resolved_config

    _ensure_sqlite_directory(resolved_config.auth.database_url)
    engine: AsyncEngine = create_async_engine(resolved_config.auth.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.auth_config = resolved_config.auth
    app.state.posts_config = resolved_config.posts
    app.state.token_service = TokenService(resolved_config.auth.jwt)
    app.state.password_hasher = PasswordHasher(rounds=resolved_config.auth.password_hash_rounds)

    @app.on_event("startup")
    async def _init_schema() -> None:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        LOGGER.info("Database schema ready")

    @app.on_event("shutdown")
    async def _dispose_engine() -> None:
        await engine.dispose()

    allowed_origins = resolved_config.cors.allowed_origins
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health", tags=["system"], summary="Service health probe")
    def health() -> dict[str, str]:
        """Return service health information."""

        return {"status": "ok", "version": resolved_config.app.version}

    app.include_router(auth_router)
    app.include_router(posts_router)

    return app
