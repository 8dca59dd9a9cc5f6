"""CampusFeed - domain and data layer of a campus food-discovery client.

This package provides the posts feed, two-level comment threads, the follow
graph, moderation workflow and masonry layout engine behind the client, with
interchangeable HTTP-backed and in-memory repositories.

Example:
    >>> from campusfeed import AuthSession, RepositoryFactory
    >>> import asyncio
    >>>
    >>> async def main():
    ...     async with RepositoryFactory(session=AuthSession()).build() as repos:
    ...         page = await repos.posts.list_posts({"sort_by": "hot"})
    ...         print([post.title for post in page.items])
    >>>
    >>> asyncio.run(main())
"""

from campusfeed.auth import AuthService, AuthSession
from campusfeed.config import settings
from campusfeed.engagement import EngagementService
from campusfeed.errors import (
    AppError,
    AuthenticationError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    RemoteError,
)
from campusfeed.masonry import layout_masonry, resolve_columns
from campusfeed.models import (
    Comment,
    CommentReply,
    Page,
    Post,
    PostFilters,
    PostStatus,
    Role,
    User,
)
from campusfeed.moderation import ModerationService
from campusfeed.repository import Repositories, RepositoryFactory

__version__ = "0.1.0"

__all__ = [
    # Main components
    "RepositoryFactory",
    "Repositories",
    "AuthSession",
    "AuthService",
    "EngagementService",
    "ModerationService",
    # Configuration
    "settings",
    # Layout
    "layout_masonry",
    "resolve_columns",
    # Models
    "Post",
    "Comment",
    "CommentReply",
    "User",
    "Role",
    "PostStatus",
    "PostFilters",
    "Page",
    # Errors
    "AppError",
    "InvalidInputError",
    "InvalidTransitionError",
    "NotFoundError",
    "PermissionDeniedError",
    "AuthenticationError",
    "RemoteError",
]
