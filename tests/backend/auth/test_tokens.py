"""Tests for signed access/refresh token issuance and validation."""
from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from jose import jwt

from backend.app.auth.models import User
from backend.app.auth.tokens import (
    ExpiredTokenError,
    InvalidTokenError,
    TokenService,
    profile_claims,
)
from backend.app.config import AuthJWTConfig

SECRET_A = base64.b64encode(b"a" * 32 + b"first-signing-key").decode("ascii")
SECRET_B = base64.b64encode(b"b" * 32 + b"other-signing-key").decode("ascii")


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@dataclass
class BasicUser:
    username: str


@dataclass
class ProfileUser:
    id: int
    email: str
    username: str
    full_name: str
    profile_image_url: Optional[str] = None
    bio: Optional[str] = None


def _config(secret: str = SECRET_A) -> AuthJWTConfig:
    return AuthJWTConfig(
        secret_key=secret,
        access_token_expires_ms=15 * 60 * 1000,
        refresh_token_expires_ms=7 * 24 * 60 * 60 * 1000,
    )


def _alice() -> ProfileUser:
    return ProfileUser(
        id=42,
        email="alice@x.com",
        username="alice",
        full_name="Alice A",
        profile_image_url="https://cdn.example.com/alice.png",
        bio="hello",
    )


def test_access_token_identity_is_user_id() -> None:
    service = TokenService(_config())
    token = service.issue_access_token(_alice())

    assert service.extract_identity(token) == "42"


def test_access_token_identity_for_orm_user() -> None:
    service = TokenService(_config())
    user = User(
        id=7,
        username="bob",
        email="bob@example.com",
        full_name="Bob B",
        profile_image_url=None,
        bio=None,
    )

    token = service.issue_access_token(user)

    assert service.extract_identity(token) == "7"
    assert service.extract_claim(token, lambda claims: claims["fullName"]) == "Bob B"


def test_access_token_carries_profile_claims_without_password() -> None:
    service = TokenService(_config())
    token = service.issue_access_token(_alice())

    claims = service.extract_all_claims(token)

    assert claims["sub"] == "alice"
    assert claims["id"] == 42
    assert claims["email"] == "alice@x.com"
    assert claims["username"] == "alice"
    assert claims["fullName"] == "Alice A"
    assert claims["profileImageUrl"] == "https://cdn.example.com/alice.png"
    assert claims["bio"] == "hello"
    assert not any("password" in key.lower() for key in claims)


def test_refresh_token_has_only_registered_claims() -> None:
    service = TokenService(_config())
    token = service.issue_refresh_token(_alice())

    assert set(service.extract_all_claims(token)) == {"sub", "iat", "exp"}
    assert service.extract_identity(token) == "alice"


def test_basic_identity_gets_no_profile_claims() -> None:
    service = TokenService(_config())
    identity = BasicUser(username="carol")

    assert profile_claims(identity) == {}
    token = service.issue_access_token(identity)

    assert set(service.extract_all_claims(token)) == {"sub", "iat", "exp"}
    assert service.extract_identity(token) == "carol"
    assert service.is_valid(token, identity)


def test_expiry_is_issued_at_plus_validity() -> None:
    clock = FakeClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))
    config = _config()
    service = TokenService(config, clock=clock)

    access = service.issue_access_token(_alice())
    refresh = service.issue_refresh_token(_alice())

    assert service.extract_issued_at(access) == clock.now
    assert service.extract_expiration(access) - service.extract_issued_at(access) == config.access_token_ttl
    assert service.extract_expiration(refresh) - service.extract_issued_at(refresh) == config.refresh_token_ttl


def test_issue_with_explicit_claims_and_validity() -> None:
    service = TokenService(_config())
    token = service.issue(BasicUser(username="dave"), {"scope": "posts"}, timedelta(minutes=2))

    claims = service.extract_all_claims(token)

    assert claims["scope"] == "posts"
    assert claims["sub"] == "dave"
    assert claims["exp"] - claims["iat"] == 120


def test_token_signed_with_other_secret_is_rejected() -> None:
    issuer = TokenService(_config(SECRET_A))
    verifier = TokenService(_config(SECRET_B))
    token = issuer.issue_access_token(_alice())

    with pytest.raises(InvalidTokenError) as excinfo:
        verifier.extract_identity(token)
    assert not isinstance(excinfo.value, ExpiredTokenError)
    assert not verifier.is_valid(token, _alice())


def test_unsigned_and_garbage_tokens_are_rejected() -> None:
    service = TokenService(_config())
    forged = jwt.encode({"sub": "alice", "id": 42}, "not-the-key", algorithm="HS256")

    with pytest.raises(InvalidTokenError):
        service.extract_all_claims("definitely-not-a-jwt")
    with pytest.raises(InvalidTokenError):
        service.extract_claim(forged, lambda claims: claims["sub"])


def test_token_expires_after_validity() -> None:
    clock = FakeClock(datetime.now(timezone.utc))
    service = TokenService(_config(), clock=clock)
    alice = _alice()
    token = service.issue_access_token(alice)

    assert service.is_valid(token, alice)

    clock.advance(timedelta(minutes=15, seconds=1))

    with pytest.raises(ExpiredTokenError):
        service.extract_identity(token)
    assert not service.is_valid(token, alice)


def test_is_valid_accepts_id_or_username_of_the_same_user() -> None:
    service = TokenService(_config())
    alice = _alice()
    other = ProfileUser(id=43, email="eve@x.com", username="eve", full_name="Eve")

    access = service.issue_access_token(alice)
    refresh = service.issue_refresh_token(alice)

    assert service.is_valid(access, alice)
    assert service.is_valid(refresh, alice)
    assert not service.is_valid(access, other)
    assert not service.is_valid(refresh, other)
