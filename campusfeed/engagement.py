"""Engagement and social-graph state.

Like, favorite and follow are idempotent toggles: engaging twice or
disengaging twice is a no-op that still reports the current state. The
transition rule lives in :func:`toggle`; every repository applies it
through :func:`apply_toggle` so the flag and its counter always move together.

Example:
    >>> toggle(False, True)
    (True, 1)
    >>> toggle(True, True)
    (True, 0)
    >>> apply_delta(0, -1)
    0
"""

from campusfeed.auth import AuthSession
from campusfeed.errors import InvalidInputError
from campusfeed.interfaces import (
    ICommentsRepository,
    IPostsRepository,
    IUsersRepository,
)
from campusfeed.logging import operation_context
from campusfeed.metrics import track_operation
from campusfeed.types import FavoriteState, FollowState, LikeState

# =============================================================================
# Transition Function
# =============================================================================


def toggle(current: bool, requested: bool) -> tuple[bool, int]:
    """Move a boolean engagement flag to the requested state.

    Args:
        current: Flag before the call
        requested: Desired flag

    Returns:
        Tuple of (new_state, delta) where delta is +1, -1 or 0
    """
    if current == requested:
        return current, 0
    return requested, 1 if requested else -1


def apply_delta(count: int, delta: int) -> int:
    """Apply a counter delta, clamping at zero."""
    return max(0, count + delta)


def apply_toggle(current: bool, count: int, requested: bool) -> tuple[bool, int]:
    """Toggle a flag and its counter in one step.

    Returns:
        Tuple of (new_flag, new_count)
    """
    state, delta = toggle(current, requested)
    return state, apply_delta(count, delta)


# =============================================================================
# Engagement Service
# =============================================================================


def _require_id(value: str, name: str) -> str:
    if not value or not str(value).strip():
        raise InvalidInputError(f"{name} is required")
    return str(value).strip()


class EngagementService:
    """User-facing engagement intents.

    The returned state comes from the repository and is authoritative; callers
    replace any optimistic local guess with it.

    Args:
        posts: Posts repository
        comments: Comments repository
        users: Users repository
        session: Current viewer
    """

    def __init__(
        self,
        posts: IPostsRepository,
        comments: ICommentsRepository,
        users: IUsersRepository,
        session: AuthSession,
    ):
        self.posts = posts
        self.comments = comments
        self.users = users
        self.session = session

    async def set_liked(self, post_id: str, liked: bool) -> LikeState:
        post_id = _require_id(post_id, "post_id")
        operation = "like_post" if liked else "unlike_post"
        with operation_context(operation, post_id=post_id) as log, track_operation(
            "posts", "like" if liked else "unlike"
        ):
            if liked:
                state = await self.posts.like_post(post_id)
            else:
                state = await self.posts.unlike_post(post_id)
            log.debug(f"Like state: {state}")
        return state

    async def like(self, post_id: str) -> LikeState:
        return await self.set_liked(post_id, True)

    async def unlike(self, post_id: str) -> LikeState:
        return await self.set_liked(post_id, False)

    async def set_favorited(self, post_id: str, favorited: bool) -> FavoriteState:
        post_id = _require_id(post_id, "post_id")
        operation = "favorite_post" if favorited else "unfavorite_post"
        with operation_context(operation, post_id=post_id) as log, track_operation(
            "posts", "favorite" if favorited else "unfavorite"
        ):
            if favorited:
                state = await self.posts.favorite_post(post_id)
            else:
                state = await self.posts.unfavorite_post(post_id)
            log.debug(f"Favorite state: {state}")
        return state

    async def favorite(self, post_id: str) -> FavoriteState:
        return await self.set_favorited(post_id, True)

    async def unfavorite(self, post_id: str) -> FavoriteState:
        return await self.set_favorited(post_id, False)

    async def set_comment_liked(self, comment_id: str, liked: bool) -> LikeState:
        comment_id = _require_id(comment_id, "comment_id")
        operation = "like_comment" if liked else "unlike_comment"
        with operation_context(operation, comment_id=comment_id), track_operation(
            "comments", "like" if liked else "unlike"
        ):
            if liked:
                return await self.comments.like_comment(comment_id)
            return await self.comments.unlike_comment(comment_id)

    async def like_comment(self, comment_id: str) -> LikeState:
        return await self.set_comment_liked(comment_id, True)

    async def unlike_comment(self, comment_id: str) -> LikeState:
        return await self.set_comment_liked(comment_id, False)

    async def set_following(self, user_id: str, following: bool) -> FollowState:
        """Follow or unfollow another user.

        Raises:
            InvalidInputError: If the viewer targets themselves
        """
        user_id = _require_id(user_id, "user_id")
        if user_id == self.session.user_id:
            raise InvalidInputError("You cannot follow yourself")
        operation = "follow_user" if following else "unfollow_user"
        with operation_context(operation, target_id=user_id) as log, track_operation(
            "users", "follow" if following else "unfollow"
        ):
            if following:
                state = await self.users.follow_user(user_id)
            else:
                state = await self.users.unfollow_user(user_id)
            log.debug(f"Follow state: {state}")
        return state

    async def follow(self, user_id: str) -> FollowState:
        return await self.set_following(user_id, True)

    async def unfollow(self, user_id: str) -> FollowState:
        return await self.set_following(user_id, False)


__all__ = [
    "toggle",
    "apply_delta",
    "apply_toggle",
    "EngagementService",
]
