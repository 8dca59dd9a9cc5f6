"""HTTP-backed repositories.

Each class maps its aggregate's operations onto REST endpoints through a
shared :class:`~campusfeed.api.ApiClient`. Inputs are validated locally
before a request is sent; responses are parsed into the same models the
in-memory repositories return, so callers cannot tell the two apart.

List endpoints answer with ``{<items key>: [...], pagination: {...}}``
where the items key is ``posts``, ``comments``, ``replies`` or ``users``.
Mutation and statistics endpoints return their payload as-is.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from campusfeed.api import ApiClient, build_path
from campusfeed.errors import InvalidInputError, RemoteError
from campusfeed.logging import logger
from campusfeed.models import (
    AuthPayload,
    Comment,
    CommentReply,
    CreateCommentInput,
    LoginInput,
    MeetingStatus,
    Page,
    Pagination,
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
    UserSearchInput,
    post_adapter,
    post_list_adapter,
    validate_input,
    validate_post_input,
)
from campusfeed.pagination import REPLIES_PAGE_SIZE, build_pagination, normalize_page_params
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

comment_list_adapter: TypeAdapter[list[Comment]] = TypeAdapter(list[Comment])
reply_list_adapter: TypeAdapter[list[CommentReply]] = TypeAdapter(list[CommentReply])
user_list_adapter: TypeAdapter[list[User]] = TypeAdapter(list[User])
user_adapter: TypeAdapter[User] = TypeAdapter(User)
auth_payload_adapter: TypeAdapter[AuthPayload] = TypeAdapter(AuthPayload)
pagination_adapter: TypeAdapter[Pagination] = TypeAdapter(Pagination)
comment_adapter: TypeAdapter[Comment] = TypeAdapter(Comment)
reply_adapter: TypeAdapter[CommentReply] = TypeAdapter(CommentReply)

# =============================================================================
# Response Parsing
# =============================================================================


def _parse(adapter: TypeAdapter[Any], data: Any, what: str) -> Any:
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        logger.error(f"Malformed {what} in backend response: {exc}")
        raise RemoteError(details=exc.errors(include_url=False)) from exc


def _parse_any_comment(item: Any) -> Comment | CommentReply:
    if isinstance(item, Mapping) and item.get("parent_id"):
        return _parse(reply_adapter, item, "reply")
    return _parse(comment_adapter, item, "comment")


def parse_page(
    data: Any,
    key: str,
    adapter: TypeAdapter[Any],
    page: int,
    limit: int,
) -> Page[Any]:
    """Turn a list response into a Page.

    Args:
        data: Envelope ``data`` field
        key: Name of the items array (``posts``, ``users``, ...)
        adapter: Adapter validating the items array
        page: Requested page, used when the response has no pagination
        limit: Requested limit, used when the response has no pagination
    """
    data = data or {}
    items = _parse(adapter, data.get(key) or [], key)
    raw_pagination = data.get("pagination")
    if raw_pagination:
        pagination = _parse(pagination_adapter, raw_pagination, "pagination")
    else:
        pagination = build_pagination(page, limit, len(items))
    return Page(items=items, pagination=pagination)


def _page_params(page: Any, limit: Any, default_limit: int | None = None) -> dict[str, int]:
    page, limit = normalize_page_params(page, limit, default_limit)
    return {"page": page, "limit": limit}


# =============================================================================
# Repositories
# =============================================================================


class HttpRepository:
    """Base class holding the shared API client."""

    def __init__(self, client: ApiClient):
        self.client = client


class HttpPostsRepository(HttpRepository):
    async def list_posts(
        self,
        filters: PostFilters | Mapping[str, Any] | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        if filters is None:
            filters = PostFilters()
        elif not isinstance(filters, PostFilters):
            filters = validate_input(PostFilters, dict(filters))
        params = _page_params(page, limit)
        query = {**filters.model_dump(mode="json", exclude={"status"}), **params}
        data = await self.client.get("/posts", params=query)
        return parse_page(data, "posts", post_list_adapter, **params)

    async def get_post(self, post_id: str) -> Post:
        data = await self.client.get(build_path("/posts/{post_id}", post_id=post_id))
        return _parse(post_adapter, data, "post")

    async def create_post(self, data: PostInput | Mapping[str, Any]) -> PostCreateResult:
        payload = validate_post_input(data)
        result = await self.client.post("/posts", json=payload.model_dump(mode="json"))
        logger.info(f"Created post {result.get('id')} ({payload.post_type})")
        return result

    async def update_post(
        self, post_id: str, data: PostInput | Mapping[str, Any]
    ) -> PostUpdateResult:
        payload = validate_post_input(data)
        return await self.client.put(
            build_path("/posts/{post_id}", post_id=post_id), json=payload.model_dump(mode="json")
        )

    async def delete_post(self, post_id: str) -> None:
        await self.client.delete(build_path("/posts/{post_id}", post_id=post_id))

    async def like_post(self, post_id: str) -> LikeState:
        return await self.client.post(build_path("/posts/{post_id}/like", post_id=post_id))

    async def unlike_post(self, post_id: str) -> LikeState:
        return await self.client.delete(build_path("/posts/{post_id}/like", post_id=post_id))

    async def favorite_post(self, post_id: str) -> FavoriteState:
        return await self.client.post(build_path("/posts/{post_id}/favorite", post_id=post_id))

    async def unfavorite_post(self, post_id: str) -> FavoriteState:
        return await self.client.delete(build_path("/posts/{post_id}/favorite", post_id=post_id))

    async def update_companion_status(
        self, post_id: str, status: MeetingStatus
    ) -> CompanionStatusResult:
        try:
            new_status = MeetingStatus(status)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown meeting status: {status}") from exc
        return await self.client.put(
            build_path("/posts/{post_id}/companion-status", post_id=post_id),
            json={"status": new_status.value},
        )


class HttpCommentsRepository(HttpRepository):
    async def list_comments(
        self, post_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[Comment]:
        params = _page_params(page, limit)
        data = await self.client.get(
            build_path("/posts/{post_id}/comments", post_id=post_id), params=params
        )
        return parse_page(data, "comments", comment_list_adapter, **params)

    async def list_replies(
        self, comment_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[CommentReply]:
        params = _page_params(page, limit, REPLIES_PAGE_SIZE)
        data = await self.client.get(
            build_path("/comments/{comment_id}/replies", comment_id=comment_id), params=params
        )
        return parse_page(data, "replies", reply_list_adapter, **params)

    async def create_comment(
        self, post_id: str, data: CreateCommentInput | Mapping[str, Any]
    ) -> Comment | CommentReply:
        payload = validate_input(CreateCommentInput, data)
        created = await self.client.post(
            build_path("/posts/{post_id}/comments", post_id=post_id),
            json=payload.model_dump(mode="json", exclude_none=True),
        )
        return _parse_any_comment(created)

    async def like_comment(self, comment_id: str) -> LikeState:
        return await self.client.post(
            build_path("/comments/{comment_id}/like", comment_id=comment_id)
        )

    async def unlike_comment(self, comment_id: str) -> LikeState:
        return await self.client.delete(
            build_path("/comments/{comment_id}/like", comment_id=comment_id)
        )

    async def delete_comment(self, comment_id: str) -> None:
        await self.client.delete(build_path("/comments/{comment_id}", comment_id=comment_id))


class HttpUsersRepository(HttpRepository):
    async def get_user(self, user_id: str) -> User:
        data = await self.client.get(build_path("/users/{user_id}", user_id=user_id))
        return _parse(user_adapter, data, "user")

    async def update_user(
        self, user_id: str, data: UpdateUserInput | Mapping[str, Any]
    ) -> User:
        payload = validate_input(UpdateUserInput, data)
        updated = await self.client.put(
            build_path("/users/{user_id}", user_id=user_id),
            json=payload.model_dump(mode="json", exclude_unset=True, exclude_none=True),
        )
        return _parse(user_adapter, updated, "user")

    async def list_user_posts(
        self,
        user_id: str,
        status: PostStatus | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        params = _page_params(page, limit)
        data = await self.client.get(
            build_path("/users/{user_id}/posts", user_id=user_id),
            params={"status": status, **params},
        )
        return parse_page(data, "posts", post_list_adapter, **params)

    async def list_user_favorites(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[Post]:
        params = _page_params(page, limit)
        data = await self.client.get(
            build_path("/users/{user_id}/favorites", user_id=user_id), params=params
        )
        return parse_page(data, "posts", post_list_adapter, **params)

    async def _list_users(self, template: str, user_id: str, page: Any, limit: Any) -> Page[User]:
        params = _page_params(page, limit)
        data = await self.client.get(build_path(template, user_id=user_id), params=params)
        return parse_page(data, "users", user_list_adapter, **params)

    async def list_following(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        return await self._list_users("/users/{user_id}/following", user_id, page, limit)

    async def list_followers(
        self, user_id: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        return await self._list_users("/users/{user_id}/followers", user_id, page, limit)

    async def follow_user(self, user_id: str) -> FollowState:
        return await self.client.post(build_path("/users/{user_id}/follow", user_id=user_id))

    async def unfollow_user(self, user_id: str) -> FollowState:
        return await self.client.delete(build_path("/users/{user_id}/follow", user_id=user_id))

    async def search_users(
        self, q: str, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        query = validate_input(UserSearchInput, {"q": q or ""})
        params = _page_params(page, limit)
        data = await self.client.get("/search/users", params={"q": query.q, **params})
        return parse_page(data, "users", user_list_adapter, **params)

    async def get_user_stats(self, user_id: str) -> UserAggregateStats:
        return await self.client.get(build_path("/stats/user/{user_id}", user_id=user_id))


class HttpAdminRepository(HttpRepository):
    async def list_pending_posts(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[Post]:
        params = _page_params(page, limit)
        data = await self.client.get("/admin/posts/pending", params=params)
        return parse_page(data, "posts", post_list_adapter, **params)

    async def list_posts(
        self,
        status: PostStatus | None = None,
        post_type: PostType | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Post]:
        params = _page_params(page, limit)
        data = await self.client.get(
            "/admin/posts", params={"status": status, "post_type": post_type, **params}
        )
        return parse_page(data, "posts", post_list_adapter, **params)

    async def review_post(
        self, post_id: str, data: ReviewInput | Mapping[str, Any]
    ) -> ReviewResult:
        review = validate_input(ReviewInput, data)
        return await self.client.put(
            build_path("/admin/posts/{post_id}/review", post_id=post_id),
            json=review.model_dump(mode="json"),
        )

    async def delete_post(self, post_id: str) -> None:
        await self.client.delete(build_path("/admin/posts/{post_id}", post_id=post_id))

    async def _list_users(self, path: str, params: Mapping[str, Any]) -> Page[User]:
        paging = _page_params(params.get("page"), params.get("limit"))
        data = await self.client.get(path, params={**params, **paging})
        return parse_page(data, "users", user_list_adapter, **paging)

    async def list_users(
        self,
        role: Role | None = None,
        is_active: bool | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[User]:
        return await self._list_users(
            "/admin/users", {"role": role, "is_active": is_active, "page": page, "limit": limit}
        )

    async def update_user_role(self, user_id: str, role: Role) -> RoleChangeResult:
        return await self.client.put(
            build_path("/admin/users/{user_id}/role", user_id=user_id),
            json={"role": Role(role).value},
        )

    async def update_user_status(self, user_id: str, is_active: bool) -> UserStatusResult:
        return await self.client.put(
            build_path("/admin/users/{user_id}/status", user_id=user_id),
            json={"is_active": bool(is_active)},
        )

    async def list_admins(self, page: int | None = None, limit: int | None = None) -> Page[User]:
        return await self._list_users("/admin/admins", {"page": page, "limit": limit})

    async def list_super_admins(
        self, page: int | None = None, limit: int | None = None
    ) -> Page[User]:
        return await self._list_users("/admin/super-admins", {"page": page, "limit": limit})

    async def list_comments(
        self,
        post_id: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Comment | CommentReply]:
        params = _page_params(page, limit)
        data = await self.client.get("/admin/comments", params={"post_id": post_id, **params})
        data = data or {}
        items = [_parse_any_comment(item) for item in data.get("comments") or []]
        if data.get("pagination"):
            pagination = _parse(pagination_adapter, data["pagination"], "pagination")
        else:
            pagination = build_pagination(params["page"], params["limit"], len(items))
        return Page(items=items, pagination=pagination)

    async def delete_comment(self, comment_id: str) -> None:
        await self.client.delete(build_path("/admin/comments/{comment_id}", comment_id=comment_id))

    async def get_platform_stats(self) -> PlatformStats:
        return await self.client.get("/stats/platform")


class HttpAuthRepository(HttpRepository):
    async def login(self, data: LoginInput | Mapping[str, Any]) -> AuthPayload:
        credentials = validate_input(LoginInput, data)
        payload = await self.client.post("/auth/login", json=credentials.model_dump())
        return _parse(auth_payload_adapter, payload, "login response")

    async def register(self, data: RegisterInput | Mapping[str, Any]) -> AuthPayload:
        account = validate_input(RegisterInput, data)
        payload = await self.client.post("/auth/register", json=account.model_dump())
        return _parse(auth_payload_adapter, payload, "register response")

    async def me(self) -> User:
        data = await self.client.get("/auth/me")
        return _parse(user_adapter, data, "user")

    async def logout(self) -> None:
        await self.client.post("/auth/logout")


__all__ = [
    "parse_page",
    "HttpRepository",
    "HttpPostsRepository",
    "HttpCommentsRepository",
    "HttpUsersRepository",
    "HttpAdminRepository",
    "HttpAuthRepository",
]
