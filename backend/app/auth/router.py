"""FastAPI router for authentication endpoints."""
from __future__ import annotations

from typing import AsyncIterator, cast

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.auth.authenticator import PasswordAuthenticator, PasswordHasher
from backend.app.auth.models import User
from backend.app.auth.repository import UserRepository
from backend.app.auth.schemas import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UserView,
)
from backend.app.auth.service import AuthService, AuthServiceError
from backend.app.auth.tokens import TokenService
from backend.app.config import AuthConfig

router = APIRouter(prefix="/api/auth", tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def status_from_reason(reason: str) -> int:
    """Translate service error reasons into HTTP status codes."""

    mapping = {
        "bad_request": status.HTTP_400_BAD_REQUEST,
        "conflict": status.HTTP_409_CONFLICT,
        "unauthorized": status.HTTP_401_UNAUTHORIZED,
        "forbidden": status.HTTP_403_FORBIDDEN,
        "not_found": status.HTTP_404_NOT_FOUND,
    }
    return mapping.get(reason, status.HTTP_400_BAD_REQUEST)


def _http_error(exc: AuthServiceError) -> HTTPException:
    code = status_from_reason(exc.reason)
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=code, detail=str(exc), headers=headers)


def get_auth_config(request: Request) -> AuthConfig:
    """Resolve the auth configuration from the application state."""

    return request.app.state.auth_config


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a database session scoped to the request."""

    session_factory = cast(async_sessionmaker[AsyncSession], request.app.state.session_factory)
    async with session_factory() as session:
        yield session


def get_token_service(request: Request) -> TokenService:
    """Return the token service stored on the app state."""

    return request.app.state.token_service


def get_password_hasher(request: Request) -> PasswordHasher:
    """Return the password hasher stored on the app state."""

    return request.app.state.password_hasher


async def get_auth_service(
    session: AsyncSession = Depends(get_db_session),
    config: AuthConfig = Depends(get_auth_config),
    token_service: TokenService = Depends(get_token_service),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    """Construct an AuthService for the current request."""

    repository = UserRepository(session)
    return AuthService(
        config=config,
        repository=repository,
        hasher=hasher,
        authenticator=PasswordAuthenticator(repository, hasher),
        token_service=token_service,
    )


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """Validate the bearer token and return the authenticated user."""

    try:
        return await service.resolve_current_user(token)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    """Register a new local account."""

    try:
        return await service.register(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    """Authenticate with an email or username and a password."""

    try:
        return await service.authenticate(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
    payload: RefreshRequest, service: AuthService = Depends(get_auth_service)
) -> AuthResponse:
    """Exchange a refresh token for a new token pair."""

    try:
        return await service.refresh(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.get("/me", response_model=UserView)
async def me(current_user: User = Depends(get_current_user)) -> UserView:
    """Return the authenticated user's public profile."""

    return UserView.from_user(current_user)


__all__ = [
    "router",
    "get_auth_config",
    "get_auth_service",
    "get_current_user",
    "get_db_session",
    "get_password_hasher",
    "get_token_service",
    "status_from_reason",
]
