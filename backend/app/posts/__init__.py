"""Posts package: creation, paginated listing and soft deletion."""

from .models import Post
from .repository import PostRepository, active_posts
from .service import PostService, PostServiceError

__all__ = ["Post", "PostRepository", "PostService", "PostServiceError", "active_posts"]
