"""Protocol interfaces for the repository layer.

Each aggregate (posts, comments, users, admin, auth) exposes one
capability interface. Two independent implementations satisfy each one:
the in-memory repositories in :mod:`campusfeed.memory` and the HTTP
repositories in :mod:`campusfeed.remote`. Neither inherits from these
Protocols; conformance is structural.

Example:
    >>> from campusfeed.interfaces import IPostsRepository
    >>> from campusfeed.memory import InMemoryPostsRepository
    >>> isinstance(InMemoryPostsRepository(), IPostsRepository)
    True
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from campusfeed.models import (
    AuthPayload,
    Comment,
    CommentReply,
    CreateCommentInput,
    LoginInput,
    MeetingStatus,
    Page,
    Post,
    PostFilters,
    PostInput,
    PostStatus,
    PostType,
    RegisterInput,
    ReviewInput,
    Role,
    UpdateUserInput,
    User,
)
from campusfeed.types import (
    CompanionStatusResult,
    FavoriteState,
    FollowState,
    LikeState,
    PlatformStats,
    PostCreateResult,
    PostUpdateResult,
    ReviewResult,
    RoleChangeResult,
    UserAggregateStats,
    UserStatusResult,
)


@runtime_checkable
class IPostsRepository(Protocol):
    """Post feed, detail, authoring and engagement."""

    async def list_posts(
        self,
        filters: PostFilters | Mapping[str, Any] | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        """List approved posts matching all given filters.

        Unknown or empty filter values are ignored.
        """
        ...

    async def get_post(self, post_id: str) -> Post:
        """Fetch one post.

        Raises:
            NotFoundError: If the post does not exist or is not visible to the viewer
        """
        ...

    async def create_post(self, data: PostInput | Mapping[str, Any]) -> PostCreateResult:
        """Validate and create a post; the new post is always ``pending``.

        Raises:
            InvalidInputError: If the payload fails variant validation
        """
        ...

    async def update_post(
        self, post_id: str, data: PostInput | Mapping[str, Any]
    ) -> PostUpdateResult:
        """Validate and apply an author edit; the post is resubmitted for review."""
        ...

    async def delete_post(self, post_id: str) -> None: ...

    async def like_post(self, post_id: str) -> LikeState: ...

    async def unlike_post(self, post_id: str) -> LikeState: ...

    async def favorite_post(self, post_id: str) -> FavoriteState: ...

    async def unfavorite_post(self, post_id: str) -> FavoriteState: ...

    async def update_companion_status(
        self, post_id: str, status: MeetingStatus
    ) -> CompanionStatusResult:
        """Open, fill or close a companion meetup (author only)."""
        ...


@runtime_checkable
class ICommentsRepository(Protocol):
    """Two-level comment threads."""

    async def list_comments(
        self, post_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[Comment]:
        """List top-level comments, each with a short preview of its replies."""
        ...

    async def list_replies(
        self, comment_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[CommentReply]: ...

    async def create_comment(
        self, post_id: str, data: CreateCommentInput | Mapping[str, Any]
    ) -> Comment | CommentReply:
        """Create a top-level comment, or a reply when ``parent_id`` is set."""
        ...

    async def like_comment(self, comment_id: str) -> LikeState: ...

    async def unlike_comment(self, comment_id: str) -> LikeState: ...

    async def delete_comment(self, comment_id: str) -> None:
        """Delete a comment; deleting a top-level comment removes its replies."""
        ...


@runtime_checkable
class IUsersRepository(Protocol):
    """Profiles and the follow graph."""

    async def get_user(self, user_id: str) -> User: ...

    async def update_user(
        self, user_id: str, data: UpdateUserInput | Mapping[str, Any]
    ) -> User: ...

    async def list_user_posts(
        self,
        user_id: str,
        status: PostStatus | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]: ...

    async def list_user_favorites(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[Post]: ...

    async def list_following(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]: ...

    async def list_followers(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]: ...

    async def follow_user(self, user_id: str) -> FollowState: ...

    async def unfollow_user(self, user_id: str) -> FollowState: ...

    async def search_users(
        self, q: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        """Active users whose name contains ``q`` (case-insensitive).

        Raises:
            InvalidInputError: If ``q`` is blank
        """
        ...

    async def get_user_stats(self, user_id: str) -> UserAggregateStats: ...


@runtime_checkable
class IAdminRepository(Protocol):
    """Moderation and account administration (role-gated)."""

    async def list_pending_posts(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[Post]: ...

    async def list_posts(
        self,
        status: PostStatus | None = None,
        post_type: PostType | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]: ...

    async def review_post(
        self, post_id: str, data: ReviewInput | Mapping[str, Any]
    ) -> ReviewResult:
        """Approve or reject a pending post, stamping ``reviewed_at``."""
        ...

    async def delete_post(self, post_id: str) -> None: ...

    async def list_users(
        self,
        role: Role | None = None,
        is_active: bool | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[User]: ...

    async def update_user_role(self, user_id: str, role: Role) -> RoleChangeResult: ...

    async def update_user_status(
        self, user_id: str, is_active: bool
    ) -> UserStatusResult: ...

    async def list_admins(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[User]: ...

    async def list_super_admins(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[User]: ...

    async def list_comments(
        self,
        post_id: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Comment | CommentReply]: ...

    async def delete_comment(self, comment_id: str) -> None: ...

    async def get_platform_stats(self) -> PlatformStats: ...


@runtime_checkable
class IAuthRepository(Protocol):
    """Credential exchange and session lookup."""

    async def login(self, data: LoginInput) -> AuthPayload: ...

    async def register(self, data: RegisterInput) -> AuthPayload: ...

    async def me(self) -> User:
        """Resolve the profile behind the current token.

        Raises:
            AuthenticationError: If there is no valid token
        """
        ...

    async def logout(self) -> None: ...


__all__ = [
    "IPostsRepository",
    "ICommentsRepository",
    "IUsersRepository",
    "IAdminRepository",
    "IAuthRepository",
]
