"""Configuration loader for the Postboard backend."""
from __future__ import annotations

import base64
import binascii
import logging
import os
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from typing_extensions import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

MIN_SIGNING_KEY_BYTES = 32

# Environment variable -> (section path, field, converter)
ENVIRONMENT_OVERRIDES = {
    "JWT_SECRET": (("auth", "jwt"), "secret_key", str),
    "JWT_EXPIRATION": (("auth", "jwt"), "access_token_expires_ms", int),
    "JWT_REFRESH_EXPIRATION": (("auth", "jwt"), "refresh_token_expires_ms", int),
    "DATABASE_URL": (("auth",), "database_url", str),
}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


class ApplicationConfig(_FrozenModel):
    """Application identity."""

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)


class LoggingConfig(_FrozenModel):
    """Root logger settings applied by entry points."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = Field("%(asctime)s [%(levelname)s] %(name)s: %(message)s", min_length=1)

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class AuthJWTConfig(_FrozenModel):
    """JWT signing settings."""

    secret_key: str = Field(..., min_length=1)
    algorithm: Literal["HS256"] = "HS256"
    access_token_expires_ms: int = Field(..., ge=1000)
    refresh_token_expires_ms: int = Field(..., ge=1000)

    @field_validator("secret_key")
    @classmethod
    def _validate_secret(cls, value: str) -> str:
        """Require a base64 secret that decodes to a usable HMAC-SHA256 key."""

        try:
            decoded = base64.b64decode(value.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            msg = "JWT secret must be a base64-encoded string"
            raise ValueError(msg) from exc
        if len(decoded) < MIN_SIGNING_KEY_BYTES:
            msg = (
                f"JWT secret must decode to at least {MIN_SIGNING_KEY_BYTES} bytes"
                f" (got {len(decoded)})"
            )
            raise ValueError(msg)
        return value.strip()

    @model_validator(mode="after")
    def _validate_lifetimes(self) -> "AuthJWTConfig":
        if self.refresh_token_expires_ms < self.access_token_expires_ms:
            msg = "auth.jwt.refresh_token_expires_ms cannot be shorter than the access token lifetime"
            raise ValueError(msg)
        return self

    @property
    def signing_key(self) -> bytes:
        """Return the raw HMAC key bytes decoded from the base64 secret."""

        return base64.b64decode(self.secret_key)

    @property
    def access_token_ttl(self) -> timedelta:
        """Return the configured access token lifetime."""

        return timedelta(milliseconds=self.access_token_expires_ms)

    @property
    def refresh_token_ttl(self) -> timedelta:
        """Return the configured refresh token lifetime."""

        return timedelta(milliseconds=self.refresh_token_expires_ms)


class AuthConfig(_FrozenModel):
    """Top-level authentication configuration."""

    database_url: str = Field(..., min_length=1)
    password_hash_rounds: int = Field(12, ge=4, le=31)
    jwt: AuthJWTConfig


class PostsConfig(_FrozenModel):
    """Pagination limits for post listings."""

    default_page_size: int = Field(20, ge=1)
    max_page_size: int = Field(100, ge=1)

    @model_validator(mode="after")
    def _validate_sizes(self) -> "PostsConfig":
        if self.default_page_size > self.max_page_size:
            msg = "posts.default_page_size cannot exceed posts.max_page_size"
            raise ValueError(msg)
        return self


class CORSConfig(_FrozenModel):
    """Cross-origin settings for browser clients."""

    allowed_origins: List[str] = Field(default_factory=list)


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    app: ApplicationConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    auth: AuthConfig
    posts: PostsConfig = Field(default_factory=PostsConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    override = os.getenv("POSTBOARD_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


def _strip_inline_comment(value: str) -> str:
    """Remove inline comments from an environment value when unquoted."""

    comment_index = value.find("#")
    if comment_index == -1:
        return value
    return value[:comment_index].rstrip()


def _load_env_file(path: Path) -> None:
    """Populate ``os.environ`` with values read from a ``.env`` file.

    Variables already present in the environment win over the file.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.lower().startswith("export "):
                    line = line[7:].lstrip()
                if "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                key = key.strip()
                if not key:
                    continue
                existing_value = os.environ.get(key)
                if existing_value is not None and existing_value.strip() != "":
                    continue
                value = raw_value.strip()
                if not value:
                    os.environ[key] = ""
                    continue
                if value[0] in {'"', "'"} and value[-1] == value[0]:
                    os.environ[key] = value[1:-1]
                    continue
                os.environ[key] = _strip_inline_comment(value)
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.

    Raises:
        ConfigError: If an override cannot be converted to the expected type.
    """

    env_file_path = _determine_env_file_path()
    if env_file_path is not None:
        _load_env_file(env_file_path)

    for env_key, (path, field, converter) in ENVIRONMENT_OVERRIDES.items():
        raw = os.getenv(env_key)
        if raw is None or not raw.strip():
            continue
        try:
            value = converter(raw.strip())
        except ValueError as exc:
            LOGGER.error("Invalid value for environment variable %s", env_key)
            raise ConfigError(f"Invalid value for {env_key}") from exc
        section = raw_content
        for key in path:
            section = section.setdefault(key, {})
        section[field] = value
        LOGGER.info("Configuration value %s overridden from %s", ".".join((*path, field)), env_key)
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML and the environment.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc
