"""Moderation workflow and role-gated authority.

Post status machine::

    draft ──submit──> pending ──review──> approved
                         │  └───review──> rejected
                         └──────<──edit── approved | rejected | pending

Creation always lands in ``pending``. Only a reviewer with role >= admin
moves ``pending`` to ``approved`` or ``rejected``; those are terminal for
review. An author edit resubmits the post, which returns it to ``pending``.
Deletion is allowed from any state by the author or an admin.

Roles compare by position in :data:`ROLE_ORDER`, so an operation requiring
``admin`` also succeeds for ``super_admin``.
"""

from collections.abc import Mapping
from typing import Any

from campusfeed.auth import AuthSession
from campusfeed.errors import (
    AuthenticationError,
    InvalidInputError,
    InvalidTransitionError,
    PermissionDeniedError,
)
from campusfeed.interfaces import IAdminRepository
from campusfeed.logging import operation_context
from campusfeed.metrics import moderation_decisions_total, track_operation
from campusfeed.models import (
    Comment,
    CommentReply,
    Page,
    Post,
    PostStatus,
    PostType,
    ReviewInput,
    Role,
    User,
    enum_or_none,
    validate_input,
)
from campusfeed.types import (
    PlatformStats,
    ReviewResult,
    RoleChangeResult,
    UserStatusResult,
)

# =============================================================================
# Role Hierarchy
# =============================================================================

ROLE_ORDER: tuple[Role, ...] = (Role.USER, Role.ADMIN, Role.SUPER_ADMIN)


def role_rank(role: Role | str | None) -> int:
    """Position of a role in ROLE_ORDER; unknown roles rank below ``user``."""
    try:
        return ROLE_ORDER.index(Role(role))
    except ValueError:
        return -1


def has_role_at_least(role: Role | str | None, required: Role | str) -> bool:
    """Check whether ``role`` carries at least the authority of ``required``.

    Example:
        >>> has_role_at_least(Role.SUPER_ADMIN, Role.ADMIN)
        True
        >>> has_role_at_least("user", "admin")
        False
    """
    return role_rank(role) >= role_rank(required) >= 0


def is_admin(role: Role | str | None) -> bool:
    return has_role_at_least(role, Role.ADMIN)


def is_super_admin(role: Role | str | None) -> bool:
    return has_role_at_least(role, Role.SUPER_ADMIN)


def require_role(user: User | None, required: Role, action: str = "perform this action") -> User:
    """Ensure ``user`` is signed in, active and holds at least ``required``.

    Raises:
        AuthenticationError: If nobody is signed in
        PermissionDeniedError: If the role is too low or the account is disabled
    """
    if user is None:
        raise AuthenticationError("Please sign in first")
    if not user.is_active:
        raise PermissionDeniedError("This account has been disabled")
    if not has_role_at_least(user.role, required):
        raise PermissionDeniedError(f"You do not have permission to {action}")
    return user


def can_delete_post(user: User | None, author_id: str) -> bool:
    """Authors may delete their own posts; admins may delete any post."""
    if user is None:
        return False
    return user.id == author_id or is_admin(user.role)


def can_view_post(user: User | None, status: PostStatus, author_id: str) -> bool:
    """Approved posts are public; others are visible to their author and admins."""
    if status == PostStatus.APPROVED:
        return True
    return can_delete_post(user, author_id)


# =============================================================================
# Status Machine
# =============================================================================

INITIAL_STATUS = PostStatus.PENDING

REVIEW_DECISIONS = frozenset({PostStatus.APPROVED, PostStatus.REJECTED})

ALLOWED_TRANSITIONS: dict[PostStatus, frozenset[PostStatus]] = {
    PostStatus.DRAFT: frozenset({PostStatus.PENDING}),
    PostStatus.PENDING: frozenset(
        {PostStatus.APPROVED, PostStatus.REJECTED, PostStatus.PENDING}
    ),
    PostStatus.APPROVED: frozenset({PostStatus.PENDING}),
    PostStatus.REJECTED: frozenset({PostStatus.PENDING}),
}

# Statuses an author edit returns to pending
RESUBMIT_TRANSITIONS = frozenset({PostStatus.PENDING, PostStatus.APPROVED, PostStatus.REJECTED})


def transition(current: PostStatus | str, target: PostStatus | str) -> PostStatus:
    """Validate a status change.

    Args:
        current: Status before the change
        target: Requested status

    Returns:
        The new status

    Raises:
        InvalidTransitionError: If the edge is not allowed
    """
    current, target = PostStatus(current), PostStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot move a post from {current} to {target}")
    return target


def review_transition(current: PostStatus | str, decision: PostStatus | str) -> PostStatus:
    """Validate a review decision; only pending posts can be reviewed."""
    decision = PostStatus(decision)
    if decision not in REVIEW_DECISIONS:
        raise InvalidInputError("Review status must be approved or rejected")
    if PostStatus(current) != PostStatus.PENDING:
        raise InvalidTransitionError(f"Only pending posts can be reviewed (post is {current})")
    return transition(current, decision)


def resubmit_transition(current: PostStatus | str) -> PostStatus:
    """Status after an author edit.

    Raises:
        InvalidTransitionError: If ``current`` is not in RESUBMIT_TRANSITIONS
    """
    current = PostStatus(current)
    if current not in RESUBMIT_TRANSITIONS:
        raise InvalidTransitionError(f"A {current} post cannot be resubmitted")
    return transition(current, PostStatus.PENDING)


# =============================================================================
# Moderation Service
# =============================================================================


class ModerationService:
    """Role-gated admin operations.

    Checks run before any repository call, so an under-privileged caller gets
    a PermissionDeniedError without touching the backend.

    Args:
        admin: Admin repository
        session: Current viewer
    """

    def __init__(self, admin: IAdminRepository, session: AuthSession):
        self.admin = admin
        self.session = session

    def _require(self, required: Role, action: str) -> User:
        return require_role(self.session.user, required, action)

    async def list_pending_posts(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[Post]:
        self._require(Role.ADMIN, "review posts")
        return await self.admin.list_pending_posts(page=page, limit=limit)

    async def list_posts(
        self,
        status: PostStatus | str | None = None,
        post_type: PostType | str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        self._require(Role.ADMIN, "manage posts")
        return await self.admin.list_posts(
            status=enum_or_none(PostStatus, status),
            post_type=enum_or_none(PostType, post_type),
            page=page,
            limit=limit,
        )

    async def review_post(
        self,
        post_id: str,
        status: PostStatus | str | None = None,
        feedback: str | None = None,
        data: ReviewInput | Mapping[str, Any] | None = None,
    ) -> ReviewResult:
        """Approve or reject a pending post.

        Args:
            post_id: Post to review
            status: ``approved`` or ``rejected``
            feedback: Optional note for the author
            data: Full review payload instead of ``status``/``feedback``
        """
        self._require(Role.ADMIN, "review posts")
        review = validate_input(
            ReviewInput, data if data is not None else {"status": status, "feedback": feedback}
        )
        with operation_context("review_post", post_id=post_id) as log, track_operation(
            "admin", "review"
        ):
            result = await self.admin.review_post(post_id, review)
            moderation_decisions_total.labels(decision=str(review.status)).inc()
            log.info(f"Post {review.status}")
        return result

    async def approve(self, post_id: str, feedback: str | None = None) -> ReviewResult:
        return await self.review_post(post_id, PostStatus.APPROVED, feedback)

    async def reject(self, post_id: str, feedback: str | None = None) -> ReviewResult:
        return await self.review_post(post_id, PostStatus.REJECTED, feedback)

    async def delete_post(self, post_id: str) -> None:
        self._require(Role.ADMIN, "delete posts")
        with operation_context("delete_post", post_id=post_id) as log, track_operation(
            "admin", "delete_post"
        ):
            await self.admin.delete_post(post_id)
            log.info("Post deleted")

    async def list_users(
        self,
        role: Role | str | None = None,
        is_active: bool | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[User]:
        self._require(Role.ADMIN, "manage users")
        return await self.admin.list_users(
            role=enum_or_none(Role, role), is_active=is_active, page=page, limit=limit
        )

    async def update_user_status(self, user_id: str, is_active: bool) -> UserStatusResult:
        actor = self._require(Role.ADMIN, "change user status")
        if user_id == actor.id:
            raise InvalidInputError("You cannot change your own account status")
        with operation_context("update_user_status", target_id=user_id) as log, track_operation(
            "admin", "update_user_status"
        ):
            result = await self.admin.update_user_status(user_id, is_active)
            log.info(f"User active={is_active}")
        return result

    async def update_user_role(self, user_id: str, role: Role | str) -> RoleChangeResult:
        actor = self._require(Role.SUPER_ADMIN, "change user roles")
        try:
            new_role = Role(role)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown role: {role}") from exc
        if user_id == actor.id:
            raise InvalidInputError("You cannot change your own role")
        with operation_context("update_user_role", target_id=user_id) as log, track_operation(
            "admin", "update_user_role"
        ):
            result = await self.admin.update_user_role(user_id, new_role)
            log.info(f"User role set to {new_role}")
        return result

    async def list_admins(self, page: int | None = None, limit: int | None = None) -> Page[User]:
        self._require(Role.SUPER_ADMIN, "list administrators")
        return await self.admin.list_admins(page=page, limit=limit)

    async def list_super_admins(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        self._require(Role.SUPER_ADMIN, "list administrators")
        return await self.admin.list_super_admins(page=page, limit=limit)

    async def list_comments(
        self,
        post_id: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Comment | CommentReply]:
        self._require(Role.ADMIN, "manage comments")
        return await self.admin.list_comments(post_id=post_id, page=page, limit=limit)

    async def delete_comment(self, comment_id: str) -> None:
        self._require(Role.ADMIN, "delete comments")
        with operation_context("delete_comment", comment_id=comment_id) as log, track_operation(
            "admin", "delete_comment"
        ):
            await self.admin.delete_comment(comment_id)
            log.info("Comment deleted")

    async def get_platform_stats(self) -> PlatformStats:
        self._require(Role.ADMIN, "view platform statistics")
        return await self.admin.get_platform_stats()


__all__ = [
    "ROLE_ORDER",
    "role_rank",
    "has_role_at_least",
    "is_admin",
    "is_super_admin",
    "require_role",
    "can_delete_post",
    "can_view_post",
    "INITIAL_STATUS",
    "REVIEW_DECISIONS",
    "ALLOWED_TRANSITIONS",
    "RESUBMIT_TRANSITIONS",
    "transition",
    "review_transition",
    "resubmit_transition",
    "ModerationService",
]
