"""Shared authentication enums."""
from __future__ import annotations

from enum import Enum


class AuthProvider(str, Enum):
    """Where a user account originates."""

    LOCAL = "local"
    GOOGLE = "google"


__all__ = ["AuthProvider"]
