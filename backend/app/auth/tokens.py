"""Issue and validate signed access and refresh tokens."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, TypeVar, Union, runtime_checkable

from jose import JWTError, jwk, jwt
from jose.constants import ALGORITHMS

from backend.app.config import AuthJWTConfig

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class InvalidTokenError(RuntimeError):
    """Raised when a token is malformed or its signature does not verify."""


class ExpiredTokenError(InvalidTokenError):
    """Raised when a correctly signed token is past its expiry."""


@runtime_checkable
class BasicIdentity(Protocol):
    """Anything that can be addressed by a username."""

    username: str


@runtime_checkable
class ProfileIdentity(Protocol):
    """Identity exposing the profile fields embedded in access tokens."""

    id: int
    email: str
    username: str
    full_name: str
    profile_image_url: Optional[str]
    bio: Optional[str]


Identity = Union[BasicIdentity, ProfileIdentity]


def profile_claims(identity: Identity) -> Dict[str, Any]:
    """Return the profile claims for an identity, or nothing for a basic one."""

    if not isinstance(identity, ProfileIdentity):
        return {}
    return {
        "id": identity.id,
        "email": identity.email,
        "username": identity.username,
        "fullName": identity.full_name,
        "profileImageUrl": identity.profile_image_url,
        "bio": identity.bio,
    }


class TokenService:
    """Build and verify HS256 JSON Web Tokens for authenticated identities.

    Tokens are signed, not encrypted: every claim is readable by whoever holds
    the token, so only public profile fields are ever embedded.
    """

    def __init__(
        self, config: AuthJWTConfig, clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._key = jwk.construct(config.signing_key, ALGORITHMS.HS256)

    def issue(
        self,
        identity: Identity,
        extra_claims: Optional[Mapping[str, Any]],
        validity: timedelta,
    ) -> str:
        """Create a signed token whose subject is the identity's username.

        Args:
            identity: Authenticated identity the token represents.
            extra_claims: Claims embedded alongside the registered ones.
            validity: Lifetime added to the issue time to produce ``exp``.

        Returns:
            str: Compact JWS serialization.
        """

        now = self._clock()
        payload: Dict[str, Any] = dict(extra_claims or {})
        payload.update(
            {
                "sub": identity.username,
                "iat": int(now.timestamp()),
                "exp": int((now + validity).timestamp()),
            }
        )
        return jwt.encode(payload, self._key, algorithm=self._config.algorithm)

    def issue_access_token(self, identity: Identity) -> str:
        """Create a short-lived token carrying the identity's profile claims."""

        return self.issue(identity, profile_claims(identity), self._config.access_token_ttl)

    def issue_refresh_token(self, identity: Identity) -> str:
        """Create a long-lived token carrying only the registered claims."""

        return self.issue(identity, {}, self._config.refresh_token_ttl)

    def extract_all_claims(self, token: str) -> Dict[str, Any]:
        """Verify the signature and expiry of ``token`` and return its claims.

        Raises:
            InvalidTokenError: If the token cannot be parsed or verified.
            ExpiredTokenError: If the token's ``exp`` lies in the past.
        """

        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self._config.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidTokenError("Malformed or unsigned token") from exc
        expires = claims.get("exp")
        if not isinstance(expires, (int, float)):
            raise InvalidTokenError("Token has no expiry")
        if expires <= self._clock().timestamp():
            raise ExpiredTokenError("Token expired")
        return claims

    def extract_claim(self, token: str, selector: Callable[[Dict[str, Any]], T]) -> T:
        """Apply ``selector`` to the verified claim set of ``token``."""

        return selector(self.extract_all_claims(token))

    def extract_identity(self, token: str) -> str:
        """Return the identifier a token addresses.

        The ``id`` claim wins when present, so access tokens resolve to the
        numeric user id and refresh tokens to the username in ``sub``.
        """

        claims = self.extract_all_claims(token)
        if "id" in claims:
            return str(claims["id"])
        return str(claims.get("sub", ""))

    def extract_expiration(self, token: str) -> datetime:
        """Return the expiry timestamp of ``token``."""

        return self.extract_claim(
            token, lambda claims: datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        )

    def extract_issued_at(self, token: str) -> datetime:
        """Return the issue timestamp of ``token``."""

        return self.extract_claim(
            token, lambda claims: datetime.fromtimestamp(claims["iat"], tz=timezone.utc)
        )

    def is_valid(self, token: str, candidate: Identity) -> bool:
        """Return whether ``token`` is live and addresses ``candidate``."""

        try:
            identifier = self.extract_identity(token)
        except ExpiredTokenError:
            LOGGER.info("Rejected expired token")
            return False
        except InvalidTokenError:
            LOGGER.warning("Rejected malformed or unsigned token")
            return False
        accepted = {candidate.username}
        if isinstance(candidate, ProfileIdentity):
            accepted.add(str(candidate.id))
        return identifier in accepted


__all__ = [
    "BasicIdentity",
    "ExpiredTokenError",
    "Identity",
    "InvalidTokenError",
    "ProfileIdentity",
    "TokenService",
    "profile_claims",
]
