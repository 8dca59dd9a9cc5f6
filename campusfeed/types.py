"""Type definitions for CampusFeed mutation results and statistics.

Mutations return the minimal post-mutation state the UI needs to reconcile,
never the full entity. These TypedDicts document those payloads, both as
returned by the in-memory repositories and as sent by the backend.

Example:
    >>> from campusfeed.types import LikeState
    >>> state: LikeState = {"is_liked": True, "like_count": 12}
"""

from typing import NotRequired, Required, TypedDict

# =============================================================================
# Engagement Toggles
# =============================================================================


class LikeState(TypedDict):
    """Reconciled like flag and counter for a post or comment."""

    is_liked: bool
    like_count: int


class FavoriteState(TypedDict):
    """Reconciled favorite flag and counter for a post."""

    is_favorited: bool
    favorite_count: int


class FollowState(TypedDict, total=False):
    """Reconciled follow edge.

    Attributes:
        is_following: Whether the viewer now follows the target
        follower_count: Target user's follower count
        following_count: Viewer's following count (in-memory backend only)
    """

    is_following: Required[bool]
    follower_count: Required[int]
    following_count: NotRequired[int]


# =============================================================================
# Post Mutations
# =============================================================================


class PostCreateResult(TypedDict):
    id: str
    post_type: str
    status: str


class PostUpdateResult(TypedDict):
    id: str
    status: str


class CompanionStatusResult(TypedDict):
    post_id: str
    status: str


# =============================================================================
# Moderation
# =============================================================================


class ReviewResult(TypedDict, total=False):
    """Outcome of a moderator review.

    Attributes:
        post_id: Reviewed post
        status: New moderation status (approved or rejected)
        reviewed_at: ISO8601 review timestamp
        feedback: Reviewer note, if any
    """

    post_id: Required[str]
    status: Required[str]
    reviewed_at: Required[str]
    feedback: NotRequired[str | None]


class RoleChangeResult(TypedDict):
    user_id: str
    role: str


class UserStatusResult(TypedDict):
    user_id: str
    is_active: bool


# =============================================================================
# Statistics
# =============================================================================


class UserAggregateStats(TypedDict):
    """Totals over one user's approved posts and social graph."""

    post_count: int
    total_likes: int
    total_favorites: int
    total_views: int
    comment_count: int
    follower_count: int
    following_count: int


class DailyStats(TypedDict):
    new_users: int
    new_posts: int
    new_comments: int


class PlatformStats(TypedDict):
    """Admin dashboard totals; ``today_stats`` counts records created since UTC midnight."""

    total_users: int
    total_posts: int
    total_comments: int
    total_views: int
    active_users: int
    pending_posts: int
    today_stats: DailyStats


__all__ = [
    "LikeState",
    "FavoriteState",
    "FollowState",
    "PostCreateResult",
    "PostUpdateResult",
    "CompanionStatusResult",
    "ReviewResult",
    "RoleChangeResult",
    "UserStatusResult",
    "UserAggregateStats",
    "DailyStats",
    "PlatformStats",
]
