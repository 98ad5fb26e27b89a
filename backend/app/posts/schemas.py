"""Pydantic schemas for post APIs."""
from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.auth.schemas import UserView
from backend.app.posts.models import Post


class _FrozenModel(BaseModel):
    """Base immutable schema."""

    model_config = ConfigDict(frozen=True)


class PostRequest(BaseModel):
    """Post creation payload."""

    content: str = Field(..., min_length=1, max_length=5000)

    @field_validator("content")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value


class PostResponse(_FrozenModel):
    """Post exposed through the API together with its author."""

    id: int
    content: str
    created_at: datetime
    updated_at: datetime
    user: UserView

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        """Convert an ORM post into its API representation."""

        return cls(
            id=post.id,
            content=post.content,
            created_at=post.created_at,
            updated_at=post.updated_at,
            user=UserView.from_user(post.user),
        )


class PostPage(_FrozenModel):
    """One zero-based page of active posts."""

    items: List[PostResponse]
    page: int = Field(..., ge=0)
    size: int = Field(..., ge=1)
    total_elements: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


__all__ = ["PostPage", "PostRequest", "PostResponse"]
