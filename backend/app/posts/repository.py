"""Repository handling persistence for posts."""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.posts.models import Post


def active_posts() -> Select[Tuple[Post]]:
    """Return the base query for posts that have not been soft deleted.

    Every read path starts from this query.
    """

    return select(Post).where(Post.deleted.is_(False))


class PostRepository:
    """Provide database access helpers for posts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Return the underlying SQLAlchemy session."""

        return self._session

    async def save(self, post: Post) -> Post:
        """Stage ``post`` for persistence and flush so generated ids are populated."""

        self._session.add(post)
        await self._session.flush()
        return post

    async def get_active_by_id(self, post_id: int) -> Optional[Post]:
        """Retrieve an active post by identifier."""

        result = await self._session.execute(active_posts().where(Post.id == post_id))
        return result.scalar_one_or_none()

    async def find_all_active(self, page: int, size: int) -> Tuple[List[Post], int]:
        """Return one page of active posts, newest first, and the active total."""

        base = active_posts()
        total = await self._session.scalar(
            select(func.count()).select_from(base.subquery())
        )
        result = await self._session.execute(
            base.order_by(Post.created_at.desc(), Post.id.desc())
            .offset(page * size)
            .limit(size)
        )
        posts: Sequence[Post] = result.scalars().all()
        return list(posts), int(total or 0)

    async def soft_delete(self, post: Post) -> None:
        """Flag ``post`` as deleted without removing the row."""

        post.deleted = True
        await self._session.flush()

    async def commit(self) -> None:
        """Commit the current transaction."""

        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""

        await self._session.rollback()


__all__ = ["PostRepository", "active_posts"]
