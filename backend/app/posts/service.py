"""Service layer for creating, listing and deleting posts."""
from __future__ import annotations

import logging
import math
from typing import Optional

from backend.app.auth.models import User
from backend.app.config import PostsConfig
from backend.app.posts.models import Post
from backend.app.posts.repository import PostRepository
from backend.app.posts.schemas import PostPage, PostRequest, PostResponse

LOGGER = logging.getLogger(__name__)

MAX_ROW_OFFSET = 2**63 - 1


class PostServiceError(RuntimeError):
    """Raised when post operations fail."""

    def __init__(self, message: str, reason: str = "bad_request") -> None:
        super().__init__(message)
        self.reason = reason


class PostService:
    """Bind posts to the requesting user and expose active posts page by page."""

    def __init__(self, config: PostsConfig, repository: PostRepository) -> None:
        self._config = config
        self._repository = repository

    async def create_post(self, payload: PostRequest, current_user: User) -> PostResponse:
        """Persist a new post owned by ``current_user``."""

        post = Post(content=payload.content, user=current_user, deleted=False)
        try:
            post = await self._repository.save(post)
            await self._repository.commit()
        except Exception as exc:  # pragma: no cover - defensive rollback
            await self._repository.rollback()
            raise exc
        LOGGER.info("User id=%s created post id=%s", current_user.id, post.id)
        return PostResponse.from_post(post)

    async def list_posts(
        self, current_user: Optional[User], page: int = 0, size: Optional[int] = None
    ) -> PostPage:
        """Return one page of active posts for an authenticated caller.

        Args:
            current_user: Resolved caller; listing requires authentication.
            page: Zero-based page index.
            size: Page size, defaulting to and capped by configuration.
        """

        if current_user is None:
            raise PostServiceError("Authentication required", reason="unauthorized")
        if page < 0:
            raise PostServiceError("page must be zero or greater")
        page_size = self._config.default_page_size if size is None else size
        if page_size < 1:
            raise PostServiceError("size must be at least 1")
        page_size = min(page_size, self._config.max_page_size)
        if page * page_size > MAX_ROW_OFFSET:
            raise PostServiceError("page is out of range")

        posts, total = await self._repository.find_all_active(page, page_size)
        return PostPage(
            items=[PostResponse.from_post(post) for post in posts],
            page=page,
            size=page_size,
            total_elements=total,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    async def delete_post(self, post_id: int, current_user: User) -> None:
        """Soft delete a post owned by ``current_user``."""

        post = await self._repository.get_active_by_id(post_id)
        if post is None:
            raise PostServiceError("Post not found", reason="not_found")
        if post.user_id != current_user.id:
            raise PostServiceError("Not authorised to delete this post", reason="forbidden")
        try:
            await self._repository.soft_delete(post)
            await self._repository.commit()
        except Exception as exc:  # pragma: no cover - defensive rollback
            await self._repository.rollback()
            raise exc
        LOGGER.info("User id=%s deleted post id=%s", current_user.id, post_id)


__all__ = ["MAX_ROW_OFFSET", "PostService", "PostServiceError"]
