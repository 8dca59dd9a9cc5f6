"""In-memory repositories.

Deterministic stand-ins for the backend, used in development (``USE_MOCK``)
and in tests. Each repository owns its own :class:`MemoryStore` and edge
sets; cross-aggregate effects (comment counts, review stamps, post counts)
go through the owning repository's methods, never through its storage.

Every public operation awaits ``asyncio.sleep(latency)`` first, so callers
see the same suspension points as with the HTTP repositories.

Example:
    >>> repos = build_in_memory_repositories(AuthSession(), latency=0)
    >>> repos.session.sign_in(repos.auth.issue_token("u1"))
    >>> await repos.posts.like_post("p1")
    {'is_liked': True, 'like_count': 13}
"""

import asyncio
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from campusfeed.auth import AuthSession
from campusfeed.config import settings
from campusfeed.engagement import apply_delta, apply_toggle, toggle
from campusfeed.errors import (
    AuthenticationError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from campusfeed.logging import logger
from campusfeed.moderation import (
    INITIAL_STATUS,
    can_delete_post,
    can_view_post,
    is_admin,
    require_role,
    resubmit_transition,
    review_transition,
    role_rank,
)
from campusfeed.models import (
    AuthPayload,
    Comment,
    CommentAuthor,
    CommentReply,
    CreateCommentInput,
    LoginInput,
    MeetingStatus,
    MentionedUser,
    Page,
    Post,
    PostAuthor,
    PostFilters,
    PostInput,
    PostStatus,
    PostType,
    RegisterInput,
    ReviewInput,
    Role,
    SortBy,
    UpdateUserInput,
    User,
    UserSearchInput,
    parse_post,
    validate_input,
    validate_post_input,
)
from campusfeed.pagination import REPLIES_PAGE_SIZE, paginate
from campusfeed.repository import MemoryStore, Repositories
from campusfeed.seed import SeedData, build_seed
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
from campusfeed.utils import format_iso, new_id, utc_now

_EPOCH = datetime.min.replace(tzinfo=UTC)
REPLY_PREVIEW_SIZE = 3


def _ts(value: datetime | None) -> datetime:
    return value or _EPOCH


def _coerce_filters(filters: PostFilters | Mapping[str, Any] | None) -> PostFilters:
    if filters is None:
        return PostFilters()
    if isinstance(filters, PostFilters):
        return filters
    return validate_input(PostFilters, dict(filters))


def _matches(post: Post, f: PostFilters) -> bool:
    """AND-composition of every filter that is set."""
    if f.category and post.category != f.category:
        return False
    if f.post_type and post.post_type != f.post_type:
        return False
    if f.share_type and getattr(post, "share_type", None) != f.share_type:
        return False
    if f.canteen and post.canteen != f.canteen:
        return False
    if f.author_id and post.author.id != f.author_id:
        return False
    if f.status and post.status != f.status:
        return False
    if f.tags and not set(f.tags).issubset(post.tags):
        return False
    if f.q:
        needle = f.q.casefold()
        if needle not in post.title.casefold() and needle not in post.content.casefold():
            return False
    return True


def _sort_posts(posts: Iterable[Post], sort_by: SortBy) -> list[Post]:
    if sort_by == SortBy.HOT:
        key: Callable[[Post], Any] = lambda p: (p.stats.like_count, _ts(p.created_at))
    elif sort_by == SortBy.TRENDING:
        key = lambda p: _ts(p.updated_at or p.created_at)
    else:
        key = lambda p: _ts(p.created_at)
    return sorted(posts, key=key, reverse=True)


# =============================================================================
# Shared Base
# =============================================================================


class InMemoryRepository:
    """Latency, viewer resolution and auth checks shared by every in-memory repository."""

    aggregate = "base"

    def __init__(self, session: AuthSession | None = None, latency: float | None = None):
        self.session = session or AuthSession()
        self.latency = settings.mock_latency if latency is None else max(0.0, latency)

    async def _delay(self) -> None:
        await asyncio.sleep(self.latency)

    def _lookup_user(self, user_id: str) -> User | None:
        return self.users.lookup(user_id)  # type: ignore[attr-defined]

    @property
    def viewer(self) -> User | None:
        """Signed-in user as currently stored (role and status are live)."""
        user_id = self.session.user_id
        if user_id is None:
            return None
        return self._lookup_user(user_id) or self.session.user

    @property
    def viewer_id(self) -> str | None:
        return self.session.user_id

    def _require_viewer(self) -> User:
        viewer = self.viewer
        if viewer is None:
            raise AuthenticationError("Please sign in first")
        if not viewer.is_active:
            raise PermissionDeniedError("This account has been disabled")
        return viewer


# =============================================================================
# Users
# =============================================================================


class InMemoryUsersRepository(InMemoryRepository):
    """Profiles and the follow graph.

    Args:
        session: Viewer session
        latency: Simulated latency in seconds
        users: Initial accounts
        follows: Initial (follower_id, followee_id) edges
        posts: Posts repository used for profile post lists
        comments: Comments repository used for profile statistics (attached
            by the comments repository itself)
    """

    aggregate = "users"

    def __init__(
        self,
        session: AuthSession | None = None,
        latency: float | None = None,
        users: Iterable[User] = (),
        follows: Iterable[tuple[str, str]] = (),
        posts: "InMemoryPostsRepository | None" = None,
    ):
        super().__init__(session, latency)
        self._users: MemoryStore[User] = MemoryStore(users)
        self._follows: set[tuple[str, str]] = set(follows)
        self.posts = posts
        self.comments: "InMemoryCommentsRepository | None" = None
        self._recount_follows()

    def _recount_follows(self) -> None:
        for user in self._users:
            user.stats.follower_count = sum(1 for _, b in self._follows if b == user.id)
            user.stats.following_count = sum(1 for a, _ in self._follows if a == user.id)

    # -- peer helpers --------------------------------------------------------

    def _lookup_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def lookup(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        for user in self._users:
            if user.email and user.email.lower() == email:
                return user
        return None

    def add(self, user: User) -> User:
        return self._users.add(user)

    def adjust_post_count(self, user_id: str, delta: int) -> None:
        user = self._users.get(user_id)
        if user is not None:
            user.stats.post_count = apply_delta(user.stats.post_count, delta)

    def set_role(self, user_id: str, role: Role) -> User:
        user = self._get_or_404(user_id)
        user.role = role
        return user

    def set_active(self, user_id: str, is_active: bool) -> User:
        user = self._get_or_404(user_id)
        user.is_active = is_active
        return user

    def select(self, role: Role | None = None, is_active: bool | None = None) -> list[User]:
        return self._users.filter(
            lambda u: (role is None or u.role == role)
            and (is_active is None or u.is_active == is_active)
        )

    def is_following(self, follower_id: str | None, followee_id: str) -> bool:
        return follower_id is not None and (follower_id, followee_id) in self._follows

    def view(self, user: User, viewer_id: str | None) -> User:
        """Copy of ``user`` with the viewer-scoped follow flag filled in."""
        following = None
        if viewer_id and viewer_id != user.id:
            following = (viewer_id, user.id) in self._follows
        return user.model_copy(deep=True, update={"is_following": following})

    def _get_or_404(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _page(self, users: list[User], page: Any, limit: Any) -> Page[User]:
        result = paginate(users, page, limit)
        result.items = [self.view(u, self.viewer_id) for u in result.items]
        return result

    # -- repository operations ----------------------------------------------

    async def get_user(self, user_id: str) -> User:
        await self._delay()
        return self.view(self._get_or_404(user_id), self.viewer_id)

    async def update_user(
        self, user_id: str, data: UpdateUserInput | Mapping[str, Any]
    ) -> User:
        await self._delay()
        viewer = self._require_viewer()
        user = self._get_or_404(user_id)
        if viewer.id != user.id:
            raise PermissionDeniedError("You can only edit your own profile")
        payload = validate_input(UpdateUserInput, data)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        updated = self._users.update(user.model_copy(update=changes))
        logger.info(f"User {user_id} updated fields: {sorted(changes)}")
        return self.view(updated, viewer.id)

    async def list_user_posts(
        self,
        user_id: str,
        status: PostStatus | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        await self._delay()
        self._get_or_404(user_id)
        viewer = self.viewer
        if self.posts is None:
            return paginate([], page, limit)
        owner_or_admin = viewer is not None and (viewer.id == user_id or is_admin(viewer.role))
        filters = PostFilters(
            author_id=user_id,
            status=status if owner_or_admin else PostStatus.APPROVED,
        )
        return self.posts.page_of(self.posts.select(filters), page, limit)

    async def list_user_favorites(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[Post]:
        await self._delay()
        self._get_or_404(user_id)
        if self.posts is None:
            return paginate([], page, limit)
        viewer = self.viewer
        visible = [
            p
            for p in self.posts.favorited_by(user_id)
            if can_view_post(viewer, p.status, p.author.id)
        ]
        return self.posts.page_of(visible, page, limit)

    async def list_following(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        await self._delay()
        self._get_or_404(user_id)
        return self._page(self._users.filter(lambda u: (user_id, u.id) in self._follows), page, limit)

    async def list_followers(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        await self._delay()
        self._get_or_404(user_id)
        return self._page(self._users.filter(lambda u: (u.id, user_id) in self._follows), page, limit)

    async def _set_following(self, user_id: str, requested: bool) -> FollowState:
        await self._delay()
        viewer = self._require_viewer()
        target = self._get_or_404(user_id)
        follower = self._users.get(viewer.id)
        if follower is None:
            raise AuthenticationError("Please sign in first")
        if target.id == follower.id:
            raise InvalidInputError("You cannot follow yourself")

        edge = (follower.id, target.id)
        following, delta = toggle(edge in self._follows, requested)
        if following:
            self._follows.add(edge)
        else:
            self._follows.discard(edge)
        target.stats.follower_count = apply_delta(target.stats.follower_count, delta)
        follower.stats.following_count = apply_delta(follower.stats.following_count, delta)

        return {
            "is_following": following,
            "follower_count": target.stats.follower_count,
            "following_count": follower.stats.following_count,
        }

    async def follow_user(self, user_id: str) -> FollowState:
        return await self._set_following(user_id, True)

    async def unfollow_user(self, user_id: str) -> FollowState:
        return await self._set_following(user_id, False)

    async def search_users(
        self, q: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        await self._delay()
        needle = validate_input(UserSearchInput, {"q": q or ""}).q.casefold()
        matches = self._users.filter(lambda u: u.is_active and needle in u.name.casefold())
        return self._page(matches, page, limit)

    async def get_user_stats(self, user_id: str) -> UserAggregateStats:
        await self._delay()
        user = self._get_or_404(user_id)
        published: list[Post] = []
        if self.posts is not None:
            published = self.posts.select(
                PostFilters(author_id=user_id, status=PostStatus.APPROVED)
            )
        comment_count = 0
        if self.comments is not None:
            comment_count = self.comments.count_by_author(user_id)
        return {
            "post_count": len(published),
            "total_likes": sum(p.stats.like_count for p in published),
            "total_favorites": sum(p.stats.favorite_count for p in published),
            "total_views": sum(p.stats.view_count for p in published),
            "comment_count": comment_count,
            "follower_count": user.stats.follower_count,
            "following_count": user.stats.following_count,
        }


# =============================================================================
# Posts
# =============================================================================


class InMemoryPostsRepository(InMemoryRepository):
    """Posts, likes and favorites.

    Args:
        session: Viewer session
        latency: Simulated latency in seconds
        users: Users repository (authors and post counts)
        posts: Initial posts
        likes: Initial (user_id, post_id) like edges
        favorites: Initial (user_id, post_id) favorite edges
    """

    aggregate = "posts"

    def __init__(
        self,
        session: AuthSession | None = None,
        latency: float | None = None,
        users: InMemoryUsersRepository | None = None,
        posts: Iterable[Post] = (),
        likes: Iterable[tuple[str, str]] = (),
        favorites: Iterable[tuple[str, str]] = (),
    ):
        super().__init__(session, latency)
        self.users = users or InMemoryUsersRepository(self.session, self.latency)
        if self.users.posts is None:
            self.users.posts = self
        self._posts: MemoryStore[Post] = MemoryStore(posts)
        self._likes: set[tuple[str, str]] = set(likes)
        self._favorites: set[tuple[str, str]] = set(favorites)
        self._delete_listeners: list[Callable[[str], None]] = []
        if len(self._posts):
            for user in self.users.select():
                user.stats.post_count = sum(1 for p in self._posts if p.author.id == user.id)

    # -- peer helpers --------------------------------------------------------

    def lookup(self, post_id: str) -> Post | None:
        return self._posts.get(post_id)

    def view(self, post: Post, viewer_id: str | None) -> Post:
        """Copy of ``post`` with viewer-scoped flags filled in."""
        return post.model_copy(
            deep=True,
            update={
                "is_liked": viewer_id is not None and (viewer_id, post.id) in self._likes,
                "is_favorited": viewer_id is not None and (viewer_id, post.id) in self._favorites,
            },
        )

    def select(self, filters: PostFilters | None = None) -> list[Post]:
        """Stored posts matching ``filters`` (any status), in the requested order."""
        filters = filters or PostFilters()
        return _sort_posts((p for p in self._posts if _matches(p, filters)), filters.sort_by)

    def favorited_by(self, user_id: str) -> list[Post]:
        return _sort_posts(
            (p for p in self._posts if (user_id, p.id) in self._favorites), SortBy.LATEST
        )

    def page_of(self, posts: list[Post], page: Any, limit: Any) -> Page[Post]:
        result = paginate(posts, page, limit)
        result.items = [self.view(p, self.viewer_id) for p in result.items]
        return result

    def adjust_comment_count(self, post_id: str, delta: int) -> None:
        post = self._posts.get(post_id)
        if post is not None:
            post.stats.comment_count = apply_delta(post.stats.comment_count, delta)

    def apply_review(
        self, post_id: str, status: PostStatus, feedback: str | None, reviewed_at: datetime
    ) -> Post:
        post = self._get_or_404(post_id)
        post.status = status
        post.review_feedback = feedback
        post.reviewed_at = reviewed_at
        return post

    def add_delete_listener(self, listener: Callable[[str], None]) -> None:
        self._delete_listeners.append(listener)

    def remove(self, post_id: str) -> Post:
        """Delete a post with its engagement edges and notify listeners."""
        post = self._get_or_404(post_id)
        self._posts.delete(post_id)
        self._likes = {edge for edge in self._likes if edge[1] != post_id}
        self._favorites = {edge for edge in self._favorites if edge[1] != post_id}
        self.users.adjust_post_count(post.author.id, -1)
        for listener in self._delete_listeners:
            listener(post_id)
        logger.info(f"Post {post_id} deleted")
        return post

    def _get_or_404(self, post_id: str) -> Post:
        post = self._posts.get(post_id)
        if post is None:
            raise NotFoundError(f"Post {post_id} not found")
        return post

    def visible_post(self, post_id: str, viewer: User | None) -> Post:
        """Stored post if the viewer may see it; hidden posts read as missing."""
        post = self._posts.get(post_id)
        if post is None or not can_view_post(viewer, post.status, post.author.id):
            raise NotFoundError(f"Post {post_id} not found")
        return post

    # -- repository operations ----------------------------------------------

    async def list_posts(
        self,
        filters: PostFilters | Mapping[str, Any] | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        await self._delay()
        public = _coerce_filters(filters).model_copy(update={"status": PostStatus.APPROVED})
        return self.page_of(self.select(public), page, limit)

    async def get_post(self, post_id: str) -> Post:
        await self._delay()
        post = self.visible_post(post_id, self.viewer)
        post.stats.view_count += 1
        return self.view(post, self.viewer_id)

    async def create_post(self, data: PostInput | Mapping[str, Any]) -> PostCreateResult:
        await self._delay()
        author = self._require_viewer()
        payload = validate_post_input(data)

        now = utc_now()
        post = parse_post(
            {
                **payload.model_dump(),
                "id": new_id("post"),
                "author": PostAuthor.from_user(author).model_dump(),
                "status": INITIAL_STATUS,
                "created_at": now,
                "updated_at": now,
            }
        )
        self._posts.add(post)
        self.users.adjust_post_count(author.id, 1)
        logger.info(f"Post {post.id} ({post.post_type}) created by {author.id}")
        return {"id": post.id, "post_type": post.post_type, "status": post.status.value}

    async def update_post(
        self, post_id: str, data: PostInput | Mapping[str, Any]
    ) -> PostUpdateResult:
        await self._delay()
        viewer = self._require_viewer()
        payload = validate_post_input(data)
        post = self._get_or_404(post_id)
        if post.author.id != viewer.id:
            raise PermissionDeniedError("Only the author can edit this post")
        if payload.post_type != post.post_type:
            raise InvalidInputError("Post type cannot be changed")

        updated = parse_post(
            {
                **post.model_dump(),
                **payload.model_dump(),
                "status": resubmit_transition(post.status),
                "reviewed_at": None,
                "review_feedback": None,
                "updated_at": utc_now(),
            }
        )
        self._posts.update(updated)
        logger.info(f"Post {post_id} edited by {viewer.id}, resubmitted for review")
        return {"id": updated.id, "status": updated.status.value}

    async def delete_post(self, post_id: str) -> None:
        await self._delay()
        viewer = self._require_viewer()
        post = self._get_or_404(post_id)
        if not can_delete_post(viewer, post.author.id):
            raise PermissionDeniedError("You can only delete your own posts")
        self.remove(post_id)

    async def _set_liked(self, post_id: str, requested: bool) -> LikeState:
        await self._delay()
        viewer = self._require_viewer()
        post = self.visible_post(post_id, viewer)
        edge = (viewer.id, post.id)
        liked, count = apply_toggle(edge in self._likes, post.stats.like_count, requested)
        if liked:
            self._likes.add(edge)
        else:
            self._likes.discard(edge)
        post.stats.like_count = count
        return {"is_liked": liked, "like_count": count}

    async def like_post(self, post_id: str) -> LikeState:
        return await self._set_liked(post_id, True)

    async def unlike_post(self, post_id: str) -> LikeState:
        return await self._set_liked(post_id, False)

    async def _set_favorited(self, post_id: str, requested: bool) -> FavoriteState:
        await self._delay()
        viewer = self._require_viewer()
        post = self.visible_post(post_id, viewer)
        edge = (viewer.id, post.id)
        favorited, count = apply_toggle(
            edge in self._favorites, post.stats.favorite_count, requested
        )
        if favorited:
            self._favorites.add(edge)
        else:
            self._favorites.discard(edge)
        post.stats.favorite_count = count
        return {"is_favorited": favorited, "favorite_count": count}

    async def favorite_post(self, post_id: str) -> FavoriteState:
        return await self._set_favorited(post_id, True)

    async def unfavorite_post(self, post_id: str) -> FavoriteState:
        return await self._set_favorited(post_id, False)

    async def update_companion_status(
        self, post_id: str, status: MeetingStatus
    ) -> CompanionStatusResult:
        await self._delay()
        viewer = self._require_viewer()
        post = self._get_or_404(post_id)
        if post.post_type != PostType.COMPANION:
            raise InvalidInputError("Only companion posts have a meeting status")
        if post.author.id != viewer.id and not is_admin(viewer.role):
            raise PermissionDeniedError("Only the author can change the meeting status")
        try:
            new_status = MeetingStatus(status)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown meeting status: {status}") from exc

        post.meeting_info.status = new_status
        post.updated_at = utc_now()
        return {"post_id": post.id, "status": new_status.value}


# =============================================================================
# Comments
# =============================================================================


class InMemoryCommentsRepository(InMemoryRepository):
    """Two-level comment threads.

    Args:
        session: Viewer session
        latency: Simulated latency in seconds
        posts: Posts repository (visibility and comment counts)
        users: Users repository (authors, mentions, follow flags)
        comments: Initial comments and replies, flat
        likes: Initial (user_id, comment_id) like edges
    """

    aggregate = "comments"

    def __init__(
        self,
        session: AuthSession | None = None,
        latency: float | None = None,
        posts: InMemoryPostsRepository | None = None,
        users: InMemoryUsersRepository | None = None,
        comments: Iterable[Comment | CommentReply] = (),
        likes: Iterable[tuple[str, str]] = (),
    ):
        super().__init__(session, latency)
        self.posts = posts or InMemoryPostsRepository(self.session, self.latency, users=users)
        self.users = users or self.posts.users
        self._comments: MemoryStore[Comment | CommentReply] = MemoryStore(comments)
        self._likes: set[tuple[str, str]] = set(likes)
        self.posts.add_delete_listener(self.purge_post)
        if self.users.comments is None:
            self.users.comments = self
        for comment in self._top_level():
            comment.reply_count = len(self._replies_of(comment.id))

    def _top_level(self, post_id: str | None = None) -> list[Comment]:
        return sorted(
            (
                c
                for c in self._comments
                if isinstance(c, Comment) and (post_id is None or c.post_id == post_id)
            ),
            key=lambda c: _ts(c.created_at),
            reverse=True,
        )

    def _replies_of(self, comment_id: str) -> list[CommentReply]:
        return sorted(
            (c for c in self._comments if isinstance(c, CommentReply) and c.parent_id == comment_id),
            key=lambda c: _ts(c.created_at),
        )

    def _get_or_404(self, comment_id: str) -> Comment | CommentReply:
        comment = self._comments.get(comment_id)
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        return comment

    def _view_author(self, author: CommentAuthor, viewer_id: str | None) -> CommentAuthor:
        return author.model_copy(
            update={"is_following": self.users.is_following(viewer_id, author.id)}
        )

    def view_reply(self, reply: CommentReply, viewer_id: str | None) -> CommentReply:
        return reply.model_copy(
            deep=True,
            update={
                "is_liked": viewer_id is not None and (viewer_id, reply.id) in self._likes,
                "author": self._view_author(reply.author, viewer_id),
            },
        )

    def view_comment(
        self, comment: Comment, viewer_id: str | None, preview: int = REPLY_PREVIEW_SIZE
    ) -> Comment:
        replies = self._replies_of(comment.id)
        return comment.model_copy(
            deep=True,
            update={
                "is_liked": viewer_id is not None and (viewer_id, comment.id) in self._likes,
                "author": self._view_author(comment.author, viewer_id),
                "reply_count": len(replies),
                "replies": [self.view_reply(r, viewer_id) for r in replies[:preview]],
            },
        )

    def view(self, comment: Comment | CommentReply, viewer_id: str | None) -> Comment | CommentReply:
        if isinstance(comment, Comment):
            return self.view_comment(comment, viewer_id)
        return self.view_reply(comment, viewer_id)

    # -- peer helpers --------------------------------------------------------

    def select(self, post_id: str | None = None) -> list[Comment | CommentReply]:
        """Every comment and reply (optionally for one post), newest first."""
        return sorted(
            (c for c in self._comments if post_id is None or c.post_id == post_id),
            key=lambda c: _ts(c.created_at),
            reverse=True,
        )

    def remove(self, comment_id: str) -> int:
        """Delete a comment; a top-level comment takes its replies with it.

        Returns:
            Number of records removed
        """
        comment = self._get_or_404(comment_id)
        if isinstance(comment, CommentReply):
            doomed = [comment.id]
        else:
            doomed = [comment.id, *(r.id for r in self._replies_of(comment.id))]

        for doomed_id in doomed:
            self._comments.delete(doomed_id)
        self._likes = {edge for edge in self._likes if edge[1] not in doomed}

        if isinstance(comment, CommentReply):
            parent = self._comments.get(comment.parent_id)
            if isinstance(parent, Comment):
                parent.reply_count = len(self._replies_of(parent.id))

        self.posts.adjust_comment_count(comment.post_id, -len(doomed))
        logger.info(f"Comment {comment_id} deleted ({len(doomed)} records)")
        return len(doomed)

    def count_by_author(self, user_id: str) -> int:
        return sum(1 for c in self._comments if c.author.id == user_id)

    def purge_post(self, post_id: str) -> None:
        doomed = {c.id for c in self._comments if c.post_id == post_id}
        for comment_id in doomed:
            self._comments.delete(comment_id)
        self._likes = {edge for edge in self._likes if edge[1] not in doomed}

    # -- repository operations ----------------------------------------------

    async def list_comments(
        self, post_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[Comment]:
        await self._delay()
        self.posts.visible_post(post_id, self.viewer)
        result = paginate(self._top_level(post_id), page, limit)
        result.items = [self.view_comment(c, self.viewer_id) for c in result.items]
        return result

    async def list_replies(
        self, comment_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[CommentReply]:
        await self._delay()
        comment = self._get_or_404(comment_id)
        self.posts.visible_post(comment.post_id, self.viewer)
        root_id = comment.parent_id if isinstance(comment, CommentReply) else comment.id
        result = paginate(self._replies_of(root_id), page, limit, default_limit=REPLIES_PAGE_SIZE)
        result.items = [self.view_reply(r, self.viewer_id) for r in result.items]
        return result

    def _mention(self, user_id: str | None) -> MentionedUser | None:
        user = self.users.lookup(user_id) if user_id else None
        return MentionedUser(id=user.id, name=user.name) if user else None

    async def create_comment(
        self, post_id: str, data: CreateCommentInput | Mapping[str, Any]
    ) -> Comment | CommentReply:
        await self._delay()
        viewer = self._require_viewer()
        payload = validate_input(CreateCommentInput, data)
        post = self.posts.visible_post(post_id, viewer)

        fields = {
            "post_id": post.id,
            "content": payload.content,
            "author": CommentAuthor(id=viewer.id, name=viewer.name, avatar_url=viewer.avatar_url),
            "mentioned_users": [
                m for m in (self._mention(uid) for uid in payload.mentioned_user_ids) if m
            ],
            "is_author": post.author.id == viewer.id,
            "reply_to": self._mention(payload.reply_to_user_id),
            "created_at": utc_now(),
        }

        if payload.parent_id:
            parent = self._get_or_404(payload.parent_id)
            if parent.post_id != post.id:
                raise InvalidInputError("Parent comment belongs to another post")
            if isinstance(parent, CommentReply):
                # Threads are two levels deep: answer the reply's top-level parent
                root_id = parent.parent_id
                if fields["reply_to"] is None:
                    fields["reply_to"] = MentionedUser(id=parent.author.id, name=parent.author.name)
            else:
                root_id = parent.id

            reply = CommentReply(id=new_id("reply"), parent_id=root_id, **fields)
            self._comments.add(reply)
            root = self._comments.get(root_id)
            if isinstance(root, Comment):
                root.reply_count = len(self._replies_of(root_id))
            created: Comment | CommentReply = self.view_reply(reply, viewer.id)
        else:
            comment = Comment(id=new_id("comment"), **fields)
            self._comments.add(comment)
            created = self.view_comment(comment, viewer.id)

        self.posts.adjust_comment_count(post.id, 1)
        logger.debug(f"Comment {created.id} created on post {post.id}")
        return created

    async def _set_liked(self, comment_id: str, requested: bool) -> LikeState:
        await self._delay()
        viewer = self._require_viewer()
        comment = self._get_or_404(comment_id)
        self.posts.visible_post(comment.post_id, viewer)
        edge = (viewer.id, comment.id)
        liked, count = apply_toggle(edge in self._likes, comment.like_count, requested)
        if liked:
            self._likes.add(edge)
        else:
            self._likes.discard(edge)
        comment.like_count = count
        return {"is_liked": liked, "like_count": count}

    async def like_comment(self, comment_id: str) -> LikeState:
        return await self._set_liked(comment_id, True)

    async def unlike_comment(self, comment_id: str) -> LikeState:
        return await self._set_liked(comment_id, False)

    async def delete_comment(self, comment_id: str) -> None:
        await self._delay()
        viewer = self._require_viewer()
        comment = self._get_or_404(comment_id)
        if comment.author.id != viewer.id and not is_admin(viewer.role):
            raise PermissionDeniedError("You can only delete your own comments")
        self.remove(comment_id)


# =============================================================================
# Admin
# =============================================================================


class InMemoryAdminRepository(InMemoryRepository):
    """Moderation and account administration.

    Role checks run here as well as in ModerationService, mirroring the
    backend's own enforcement.
    """

    aggregate = "admin"

    def __init__(
        self,
        session: AuthSession | None = None,
        latency: float | None = None,
        posts: InMemoryPostsRepository | None = None,
        comments: InMemoryCommentsRepository | None = None,
        users: InMemoryUsersRepository | None = None,
    ):
        super().__init__(session, latency)
        self.posts = posts or InMemoryPostsRepository(self.session, self.latency, users=users)
        self.users = users or self.posts.users
        self.comments = comments or InMemoryCommentsRepository(
            self.session, self.latency, posts=self.posts, users=self.users
        )

    def _require(self, required: Role, action: str) -> User:
        return require_role(self.viewer, required, action)

    def _users_page(self, users: list[User], page: Any, limit: Any) -> Page[User]:
        result = paginate(users, page, limit)
        result.items = [self.users.view(u, self.viewer_id) for u in result.items]
        return result

    async def list_pending_posts(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[Post]:
        return await self.list_posts(status=PostStatus.PENDING, page=page, limit=limit)

    async def list_posts(
        self,
        status: PostStatus | None = None,
        post_type: PostType | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        await self._delay()
        self._require(Role.ADMIN, "manage posts")
        filters = PostFilters(status=status, post_type=post_type)
        return self.posts.page_of(self.posts.select(filters), page, limit)

    async def review_post(
        self, post_id: str, data: ReviewInput | Mapping[str, Any]
    ) -> ReviewResult:
        await self._delay()
        reviewer = self._require(Role.ADMIN, "review posts")
        review = validate_input(ReviewInput, data)
        post = self.posts.lookup(post_id)
        if post is None:
            raise NotFoundError(f"Post {post_id} not found")

        status = review_transition(post.status, review.status)
        reviewed_at = utc_now()
        self.posts.apply_review(post_id, status, review.feedback, reviewed_at)
        logger.info(f"Post {post_id} reviewed by {reviewer.id}: {status}")
        return {
            "post_id": post_id,
            "status": status.value,
            "reviewed_at": format_iso(reviewed_at) or "",
            "feedback": review.feedback,
        }

    async def delete_post(self, post_id: str) -> None:
        await self._delay()
        self._require(Role.ADMIN, "delete posts")
        self.posts.remove(post_id)

    async def list_users(
        self,
        role: Role | None = None,
        is_active: bool | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[User]:
        await self._delay()
        self._require(Role.ADMIN, "manage users")
        return self._users_page(self.users.select(role=role, is_active=is_active), page, limit)

    async def update_user_role(self, user_id: str, role: Role) -> RoleChangeResult:
        await self._delay()
        self._require(Role.SUPER_ADMIN, "change user roles")
        try:
            new_role = Role(role)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown role: {role}") from exc
        user = self.users.set_role(user_id, new_role)
        return {"user_id": user.id, "role": user.role.value}

    async def update_user_status(self, user_id: str, is_active: bool) -> UserStatusResult:
        await self._delay()
        actor = self._require(Role.ADMIN, "change user status")
        target = self.users.lookup(user_id)
        if target is None:
            raise NotFoundError(f"User {user_id} not found")
        if role_rank(target.role) > role_rank(actor.role):
            raise PermissionDeniedError("You cannot change the status of a higher-ranked user")
        user = self.users.set_active(user_id, bool(is_active))
        return {"user_id": user.id, "is_active": user.is_active}

    async def list_admins(self, page: int | None = None, limit: int | None = None) -> Page[User]:
        await self._delay()
        self._require(Role.SUPER_ADMIN, "list administrators")
        return self._users_page(self.users.select(role=Role.ADMIN), page, limit)

    async def list_super_admins(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        await self._delay()
        self._require(Role.SUPER_ADMIN, "list administrators")
        return self._users_page(self.users.select(role=Role.SUPER_ADMIN), page, limit)

    async def list_comments(
        self,
        post_id: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Comment | CommentReply]:
        await self._delay()
        self._require(Role.ADMIN, "manage comments")
        result = paginate(self.comments.select(post_id), page, limit)
        result.items = [self.comments.view(c, self.viewer_id) for c in result.items]
        return result

    async def delete_comment(self, comment_id: str) -> None:
        await self._delay()
        self._require(Role.ADMIN, "delete comments")
        self.comments.remove(comment_id)

    async def get_platform_stats(self) -> PlatformStats:
        await self._delay()
        self._require(Role.ADMIN, "view platform statistics")
        users = self.users.select()
        posts = self.posts.select()
        comments = self.comments.select()
        midnight = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)

        def created_today(records: Iterable[Any]) -> int:
            return sum(1 for r in records if _ts(r.created_at) >= midnight)

        return {
            "total_users": len(users),
            "total_posts": len(posts),
            "total_comments": len(comments),
            "total_views": sum(p.stats.view_count for p in posts),
            "active_users": sum(1 for u in users if u.is_active),
            "pending_posts": sum(1 for p in posts if p.status == PostStatus.PENDING),
            "today_stats": {
                "new_users": created_today(users),
                "new_posts": created_today(posts),
                "new_comments": created_today(comments),
            },
        }


# =============================================================================
# Auth
# =============================================================================


class InMemoryAuthRepository(InMemoryRepository):
    """Credential check against seeded passwords; tokens live only in this process."""

    aggregate = "auth"

    def __init__(
        self,
        session: AuthSession | None = None,
        latency: float | None = None,
        users: InMemoryUsersRepository | None = None,
        credentials: Mapping[str, str] | None = None,
    ):
        super().__init__(session, latency)
        self.users = users or InMemoryUsersRepository(self.session, self.latency)
        self._credentials: dict[str, str] = {
            email.lower(): password for email, password in (credentials or {}).items()
        }
        self._tokens: dict[str, str] = {}

    def issue_token(self, user_id: str) -> AuthPayload:
        """Mint a session token for an existing user (sign-in without a password)."""
        user = self.users.lookup(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        token = f"mock.{user.id}.{new_id('tok')}"
        self._tokens[token] = user.id
        return AuthPayload(token=token, user=self.users.view(user, user.id))

    async def login(self, data: LoginInput | Mapping[str, Any]) -> AuthPayload:
        await self._delay()
        credentials = validate_input(LoginInput, data)
        user = self.users.find_by_email(credentials.email)
        if user is None or self._credentials.get(credentials.email) != credentials.password:
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise PermissionDeniedError("This account has been disabled")
        return self.issue_token(user.id)

    async def register(self, data: RegisterInput | Mapping[str, Any]) -> AuthPayload:
        await self._delay()
        payload = validate_input(RegisterInput, data)
        if payload.email in self._credentials or self.users.find_by_email(payload.email):
            raise InvalidInputError("Email already registered")
        user = self.users.add(
            User(
                id=new_id("user"),
                name=payload.name,
                email=payload.email,
                role=Role.USER,
                created_at=utc_now(),
            )
        )
        self._credentials[payload.email] = payload.password
        return self.issue_token(user.id)

    async def me(self) -> User:
        await self._delay()
        token = self.session.token
        user_id = self._tokens.get(token) if token else None
        user = self.users.lookup(user_id) if user_id else None
        if user is None:
            raise AuthenticationError("Session expired, please sign in again")
        return self.users.view(user, user.id)

    async def logout(self) -> None:
        await self._delay()
        if self.session.token:
            self._tokens.pop(self.session.token, None)


# =============================================================================
# Wiring
# =============================================================================


def build_in_memory_repositories(
    session: AuthSession | None = None,
    latency: float | None = None,
    seed: SeedData | None = None,
) -> Repositories:
    """Construct one isolated in-memory repository family.

    Args:
        session: Viewer session shared by all repositories
        latency: Simulated latency in seconds (defaults to settings)
        seed: Initial data (a fresh :func:`build_seed` when omitted)

    Returns:
        Repositories bundle
    """
    session = session or AuthSession()
    seed = seed or build_seed()

    users = InMemoryUsersRepository(session, latency, users=seed.users, follows=seed.follows)
    posts = InMemoryPostsRepository(
        session,
        latency,
        users=users,
        posts=seed.posts,
        likes=seed.post_likes,
        favorites=seed.post_favorites,
    )
    comments = InMemoryCommentsRepository(
        session,
        latency,
        posts=posts,
        users=users,
        comments=seed.comments,
        likes=seed.comment_likes,
    )
    admin = InMemoryAdminRepository(session, latency, posts=posts, comments=comments, users=users)
    auth = InMemoryAuthRepository(session, latency, users=users, credentials=seed.credentials)

    return Repositories(
        posts=posts,
        comments=comments,
        users=users,
        admin=admin,
        auth=auth,
        session=session,
    )


__all__ = [
    "REPLY_PREVIEW_SIZE",
    "InMemoryRepository",
    "InMemoryUsersRepository",
    "InMemoryPostsRepository",
    "InMemoryCommentsRepository",
    "InMemoryAdminRepository",
    "InMemoryAuthRepository",
    "build_in_memory_repositories",
]
