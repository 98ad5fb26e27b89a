"""Authentication package providing account management and signed tokens."""

from backend.app.auth.service import AuthService, AuthServiceError
from backend.app.auth.tokens import TokenService

__all__ = ["AuthService", "AuthServiceError", "TokenService"]
