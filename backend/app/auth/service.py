"""Service layer orchestrating registration, login and token exchange."""
from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError

from backend.app.auth.authenticator import (
    BadCredentialsError,
    CredentialsAuthenticator,
    PasswordHasher,
)
from backend.app.auth.enums import AuthProvider
from backend.app.auth.models import User
from backend.app.auth.repository import UserRepository
from backend.app.auth.schemas import (
    MAX_PASSWORD_BYTES,
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UserView,
    password_fits_hash,
)
from backend.app.auth.tokens import ExpiredTokenError, InvalidTokenError, TokenService
from backend.app.config import AuthConfig

LOGGER = logging.getLogger(__name__)

REFRESH_TOKEN_CLAIMS = frozenset({"sub", "iat", "exp"})
_EMAIL_ADAPTER = TypeAdapter(EmailStr)


class AuthServiceError(RuntimeError):
    """Raised when authentication operations fail."""

    def __init__(self, message: str, reason: str = "bad_request") -> None:
        super().__init__(message)
        self.reason = reason


class DuplicateUsernameError(AuthServiceError):
    """Raised when registering a username that is already taken."""

    def __init__(self, message: str = "Username already exists") -> None:
        super().__init__(message, reason="conflict")


class DuplicateEmailError(AuthServiceError):
    """Raised when registering an email that is already taken."""

    def __init__(self, message: str = "Email already exists") -> None:
        super().__init__(message, reason="conflict")


class InvalidCredentialsError(AuthServiceError):
    """Raised when a login attempt presents wrong credentials."""

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message, reason="unauthorized")


class AuthenticationFailedError(AuthServiceError):
    """Raised when verified credentials do not resolve to a stored user."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, reason="unauthorized")


class BadRequestError(AuthServiceError):
    """Raised when an authentication request is missing required input."""

    def __init__(self, message: str) -> None:
        super().__init__(message, reason="bad_request")


class AuthService:
    """Coordinate the user store, credential checks and token issuance."""

    def __init__(
        self,
        config: AuthConfig,
        repository: UserRepository,
        hasher: PasswordHasher,
        authenticator: CredentialsAuthenticator,
        token_service: TokenService,
    ) -> None:
        self._config = config
        self._repository = repository
        self._hasher = hasher
        self._authenticator = authenticator
        self._token_service = token_service

    def _issue_tokens(self, user: User) -> AuthResponse:
        """Build the token pair and public view for ``user``."""

        return AuthResponse(
            access_token=self._token_service.issue_access_token(user),
            refresh_token=self._token_service.issue_refresh_token(user),
            token_type="bearer",
            expires_in=max(1, int(self._config.jwt.access_token_ttl.total_seconds())),
            user=UserView.from_user(user),
        )

    async def _ensure_available(self, username: str, email: str) -> None:
        if await self._repository.exists_by_username(username):
            raise DuplicateUsernameError()
        if await self._repository.exists_by_email(email):
            raise DuplicateEmailError()

    async def register(self, payload: RegisterRequest) -> AuthResponse:
        """Create a local account and return its first token pair.

        Raises:
            DuplicateUsernameError: If the username is taken (checked first).
            DuplicateEmailError: If the email is taken.
        """

        await self._ensure_available(payload.username, payload.email)

        user = User(
            username=payload.username,
            email=payload.email,
            hashed_password=self._hasher.hash(payload.password),
            full_name=payload.full_name,
            provider=AuthProvider.LOCAL,
        )
        try:
            user = await self._repository.save(user)
            await self._repository.commit()
        except IntegrityError as exc:
            # A concurrent registration won the unique constraint.
            await self._repository.rollback()
            await self._ensure_available(payload.username, payload.email)
            raise AuthServiceError("Account already exists", reason="conflict") from exc
        except Exception as exc:  # pragma: no cover - defensive rollback
            await self._repository.rollback()
            raise exc

        LOGGER.info("Registered user id=%s username=%s", user.id, user.username)
        return self._issue_tokens(user)

    @staticmethod
    def _validate_login(payload: LoginRequest) -> Tuple[str, str]:
        """Return the login identifier and password, or raise ``BadRequestError``."""

        login_id = payload.login_identifier
        if login_id is None:
            raise BadRequestError("Email or username is required")
        if payload.email is not None and payload.email.strip():
            try:
                login_id = str(_EMAIL_ADAPTER.validate_python(login_id))
            except ValidationError as exc:
                raise BadRequestError("Malformed email address") from exc
        elif len(login_id) > 50:
            raise BadRequestError("Username is too long")
        password = payload.password
        if not password or not password_fits_hash(password):
            raise BadRequestError(f"Password must be 1 to {MAX_PASSWORD_BYTES} bytes")
        return login_id, password

    async def authenticate(self, payload: LoginRequest) -> AuthResponse:
        """Verify credentials and return a fresh token pair.

        Raises:
            InvalidCredentialsError: On wrong credentials or malformed login
                input, including a request without any login identifier.
            AuthenticationFailedError: If the credentials verified but no user
                record matches the identifier.
        """

        try:
            login_id, password = self._validate_login(payload)
            try:
                await self._authenticator.authenticate(login_id, password)
            except BadCredentialsError as exc:
                raise InvalidCredentialsError() from exc

            user = await self._repository.get_user_by_email(login_id)
            if user is None:
                user = await self._repository.get_user_by_username(login_id)
            if user is None:
                LOGGER.error("Authenticated identifier has no matching user record")
                raise AuthenticationFailedError()
        except BadRequestError as exc:
            raise InvalidCredentialsError() from exc

        LOGGER.info("User id=%s logged in", user.id)
        return self._issue_tokens(user)

    def _verified_claims(self, token: str) -> Dict[str, Any]:
        try:
            return self._token_service.extract_all_claims(token)
        except ExpiredTokenError as exc:
            raise AuthServiceError("Token expired", reason="unauthorized") from exc
        except InvalidTokenError as exc:
            raise AuthServiceError("Invalid token", reason="unauthorized") from exc

    async def _load_token_user(self, token: str, *, refresh_only: bool = False) -> User:
        """Return the stored user a token addresses, if the token is valid for it."""

        claims = self._verified_claims(token)
        if refresh_only and not set(claims) <= REFRESH_TOKEN_CLAIMS:
            raise AuthServiceError("Not a refresh token", reason="unauthorized")
        identifier = str(claims["id"]) if "id" in claims else str(claims.get("sub", ""))

        if identifier.isdigit():
            user = await self._repository.get_user_by_id(int(identifier))
        else:
            user = await self._repository.get_user_by_username(identifier)
        if user is None or not self._token_service.is_valid(token, user):
            raise AuthServiceError("User not authorized", reason="unauthorized")
        return user

    async def refresh(self, payload: RefreshRequest) -> AuthResponse:
        """Exchange a live refresh token for a new token pair.

        Access tokens carry profile claims and are refused.
        """

        user = await self._load_token_user(payload.refresh_token, refresh_only=True)
        LOGGER.info("Refreshed tokens for user id=%s", user.id)
        return self._issue_tokens(user)

    async def resolve_current_user(self, token: str) -> User:
        """Return the user a bearer token belongs to."""

        return await self._load_token_user(token)


__all__ = [
    "AuthService",
    "AuthServiceError",
    "AuthenticationFailedError",
    "BadRequestError",
    "DuplicateEmailError",
    "DuplicateUsernameError",
    "InvalidCredentialsError",
]
