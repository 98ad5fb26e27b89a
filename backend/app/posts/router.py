"""FastAPI router for post endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.auth.models import User
from backend.app.auth.router import get_current_user, get_db_session, status_from_reason
from backend.app.config import PostsConfig
from backend.app.posts.repository import PostRepository
from backend.app.posts.schemas import PostPage, PostRequest, PostResponse
from backend.app.posts.service import PostService, PostServiceError

router = APIRouter(prefix="/api/posts", tags=["posts"])


def get_posts_config(request: Request) -> PostsConfig:
    """Resolve the posts configuration from the application state."""

    return request.app.state.posts_config


async def get_post_service(
    session: AsyncSession = Depends(get_db_session),
    config: PostsConfig = Depends(get_posts_config),
) -> PostService:
    """Construct a PostService for the current request."""

    return PostService(config=config, repository=PostRepository(session))


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostRequest,
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    """Create a post owned by the authenticated user."""

    try:
        return await service.create_post(payload, current_user)
    except PostServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc


@router.get("", response_model=PostPage)
async def list_posts(
    page: int = Query(0, ge=0),
    size: Optional[int] = Query(None, ge=1),
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(get_current_user),
) -> PostPage:
    """List active posts, newest first."""

    try:
        return await service.list_posts(current_user, page=page, size=size)
    except PostServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: int,
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(get_current_user),
) -> Response:
    """Soft delete one of the authenticated user's posts."""

    try:
        await service.delete_post(post_id, current_user)
    except PostServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router", "get_post_service", "get_posts_config"]
