"""Tests for YAML configuration loading and environment overrides."""
from __future__ import annotations

import base64
from datetime import timedelta
from pathlib import Path
from typing import Iterator

import pytest
import yaml

from backend.app.config import AppConfig, AuthJWTConfig, ConfigError, load_config

SECRET = base64.b64encode(b"config-test-signing-key-0123456789").decode("ascii")
OVERRIDE_KEYS = ("JWT_SECRET", "JWT_EXPIRATION", "JWT_REFRESH_EXPIRATION", "DATABASE_URL")


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in OVERRIDE_KEYS:
        monkeypatch.setenv(key, "")
    monkeypatch.setenv("POSTBOARD_ENV_FILE", str(tmp_path / "missing.env"))
    load_config.cache_clear()
    yield
    load_config.cache_clear()


def _write_config(tmp_path: Path, jwt_section: dict) -> Path:
    path = tmp_path / "config.yaml"
    content = {
        "app": {"name": "Postboard API", "version": "9.9.9"},
        "auth": {"database_url": "sqlite+aiosqlite:///:memory:", "jwt": jwt_section},
        "posts": {"default_page_size": 5, "max_page_size": 10},
    }
    path.write_text(yaml.safe_dump(content), encoding="utf-8")
    return path


def test_repository_config_loads_with_secret_from_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("JWT_SECRET", SECRET)

    config = load_config()

    assert isinstance(config, AppConfig)
    assert config.app.name == "Postboard API"
    assert config.auth.jwt.algorithm == "HS256"
    assert config.auth.jwt.access_token_ttl == timedelta(days=1)
    assert config.auth.jwt.refresh_token_ttl == timedelta(days=7)
    assert config.posts.default_page_size == 20
    assert config.logging.level == "INFO"


def test_environment_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_config(
        tmp_path,
        {"secret_key": SECRET, "access_token_expires_ms": 60000, "refresh_token_expires_ms": 120000},
    )
    monkeypatch.setenv("JWT_EXPIRATION", "90000")
    monkeypatch.setenv("JWT_REFRESH_EXPIRATION", "180000")
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///override.db")

    config = load_config(path)

    assert config.app.version == "9.9.9"
    assert config.auth.jwt.access_token_ttl == timedelta(seconds=90)
    assert config.auth.jwt.refresh_token_ttl == timedelta(seconds=180)
    assert config.auth.database_url == "sqlite+aiosqlite:///override.db"
    assert config.auth.jwt.signing_key == base64.b64decode(SECRET)


def test_env_file_fills_missing_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_config(
        tmp_path, {"access_token_expires_ms": 60000, "refresh_token_expires_ms": 120000}
    )
    env_file = tmp_path / ".env"
    env_file.write_text(
        f'# local secrets\nexport JWT_SECRET="{SECRET}"\nJWT_EXPIRATION=30000 # half a minute\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("POSTBOARD_ENV_FILE", str(env_file))
    monkeypatch.setenv("JWT_REFRESH_EXPIRATION", "240000")

    config = load_config(path)

    assert config.auth.jwt.secret_key == SECRET
    assert config.auth.jwt.access_token_expires_ms == 30000
    assert config.auth.jwt.refresh_token_expires_ms == 240000


def test_missing_secret_is_fatal(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path, {"access_token_expires_ms": 60000, "refresh_token_expires_ms": 120000}
    )

    with pytest.raises(ConfigError):
        load_config(path)


def test_invalid_override_is_fatal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_config(
        tmp_path,
        {"secret_key": SECRET, "access_token_expires_ms": 60000, "refresh_token_expires_ms": 120000},
    )
    monkeypatch.setenv("JWT_EXPIRATION", "one hour")

    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize(
    "secret",
    [
        "not base64 at all!",
        base64.b64encode(b"too-short").decode("ascii"),
    ],
)
def test_weak_or_malformed_secrets_are_rejected(secret: str) -> None:
    with pytest.raises(ValueError):
        AuthJWTConfig(
            secret_key=secret,
            access_token_expires_ms=60000,
            refresh_token_expires_ms=120000,
        )


def test_refresh_lifetime_cannot_be_shorter_than_access() -> None:
    with pytest.raises(ValueError):
        AuthJWTConfig(
            secret_key=SECRET,
            access_token_expires_ms=120000,
            refresh_token_expires_ms=60000,
        )


def test_missing_file_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")
