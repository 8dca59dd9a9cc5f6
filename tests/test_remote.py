"""Tests for the HTTP-backed repositories against a mock transport."""

import json

import httpx
import pytest

from campusfeed.api import ApiClient
from campusfeed.errors import InvalidInputError, NotFoundError, RemoteError
from campusfeed.models import (
    Comment,
    CommentReply,
    PostStatus,
    SeekingPost,
    SharePost,
    post_list_adapter,
)
from campusfeed.remote import (
    HttpAdminRepository,
    HttpAuthRepository,
    HttpCommentsRepository,
    HttpPostsRepository,
    HttpUsersRepository,
    parse_page,
)

POST_SHARE = {
    "id": "p1",
    "post_type": "share",
    "title": "Spicy noodles",
    "content": "Worth the queue",
    "author": {"id": "u1", "name": "Alice"},
    "share_type": "recommend",
    "price": 14,
    "status": "approved",
    "created_at": "2024-09-01T09:00:00Z",
}
POST_SEEKING = {
    "id": "p2",
    "post_type": "seeking",
    "title": "Breakfast?",
    "content": "Something warm",
    "author": {"id": "u2", "name": "Bob"},
    "budget_range": {"min": 3, "max": 10},
    "status": "approved",
}
USER = {"id": "u1", "name": "Alice", "email": "alice@campus.edu", "role": "user"}


class Recorder:
    """Mock backend answering every request with a fixed envelope."""

    def __init__(self, data=None, status=200, code=200, message="ok"):
        self.data = data
        self.status = status
        self.code = code
        self.message = message
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status, json={"code": self.code, "message": self.message, "data": self.data}
        )

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self):
        return json.loads(self.last.content) if self.last.content else None


def _client(recorder):
    return ApiClient(
        "https://api.campus.test",
        get_token=lambda: "tok",
        transport=httpx.MockTransport(recorder),
    )


# =============================================================================
# Page Parsing
# =============================================================================


class TestParsePage:
    def test_uses_backend_pagination(self):
        data = {
            "posts": [POST_SHARE, POST_SEEKING],
            "pagination": {"page": 2, "limit": 2, "total": 7, "total_pages": 4},
        }
        page = parse_page(data, "posts", post_list_adapter, 2, 2)
        assert isinstance(page.items[0], SharePost)
        assert isinstance(page.items[1], SeekingPost)
        assert page.pagination.total_pages == 4

    def test_missing_pagination_is_derived(self):
        page = parse_page({"posts": [POST_SHARE]}, "posts", post_list_adapter, 1, 20)
        assert page.pagination.model_dump() == {
            "page": 1,
            "limit": 20,
            "total": 1,
            "total_pages": 1,
        }

    def test_empty_data(self):
        page = parse_page(None, "posts", post_list_adapter, 1, 20)
        assert page.items == []

    def test_malformed_items_are_remote_errors(self):
        with pytest.raises(RemoteError):
            parse_page({"posts": [{"id": "broken"}]}, "posts", post_list_adapter, 1, 20)


# =============================================================================
# Posts
# =============================================================================


@pytest.mark.asyncio
async def test_list_posts_sends_filters():
    recorder = Recorder({"posts": [POST_SHARE], "pagination": None})
    repo = HttpPostsRepository(_client(recorder))

    page = await repo.list_posts({"category": "food", "tags": ["spicy", "cheap"], "status": "pending"})

    params = dict(recorder.last.url.params)
    assert params == {
        "category": "food",
        "tags": "spicy,cheap",
        "sort_by": "latest",
        "page": "1",
        "limit": "20",
    }
    assert [p.id for p in page.items] == ["p1"]
    assert recorder.last.headers["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_get_post_encodes_id():
    recorder = Recorder(POST_SHARE)
    repo = HttpPostsRepository(_client(recorder))

    post = await repo.get_post("p/1")

    assert recorder.last.url.raw_path == b"/posts/p%2F1"
    assert post.status == PostStatus.APPROVED


@pytest.mark.asyncio
async def test_create_post_validates_before_sending(share_input):
    recorder = Recorder({"id": "post_9", "post_type": "share", "status": "pending"})
    repo = HttpPostsRepository(_client(recorder))
    share_input["price"] = -1

    with pytest.raises(InvalidInputError):
        await repo.create_post(share_input)
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_create_post_body(share_input):
    recorder = Recorder({"id": "post_9", "post_type": "share", "status": "pending"})
    repo = HttpPostsRepository(_client(recorder))

    result = await repo.create_post(share_input)

    assert result["id"] == "post_9"
    assert recorder.last.method == "POST"
    assert recorder.last_json["post_type"] == "share"
    assert recorder.last_json["price"] == 12


@pytest.mark.asyncio
async def test_like_and_unlike_routes():
    recorder = Recorder({"is_liked": True, "like_count": 3})
    repo = HttpPostsRepository(_client(recorder))

    assert await repo.like_post("p1") == {"is_liked": True, "like_count": 3}
    assert (recorder.last.method, recorder.last.url.path) == ("POST", "/posts/p1/like")

    await repo.unfavorite_post("p1")
    assert (recorder.last.method, recorder.last.url.path) == ("DELETE", "/posts/p1/favorite")


@pytest.mark.asyncio
async def test_companion_status():
    recorder = Recorder({"post_id": "p3", "status": "full"})
    repo = HttpPostsRepository(_client(recorder))

    await repo.update_companion_status("p3", "full")
    assert recorder.last.url.path == "/posts/p3/companion-status"
    assert recorder.last_json == {"status": "full"}

    with pytest.raises(InvalidInputError):
        await repo.update_companion_status("p3", "cancelled")


@pytest.mark.asyncio
async def test_not_found_propagates():
    recorder = Recorder(status=404, code=404, message="Post not found")
    repo = HttpPostsRepository(_client(recorder))
    with pytest.raises(NotFoundError, match="Post not found"):
        await repo.get_post("p404")


# =============================================================================
# Comments
# =============================================================================


@pytest.mark.asyncio
async def test_list_replies_default_limit():
    reply = {
        "id": "r1",
        "post_id": "p1",
        "parent_id": "c1",
        "content": "Same",
        "author": {"id": "u3", "name": "Carol"},
    }
    recorder = Recorder({"replies": [reply]})
    repo = HttpCommentsRepository(_client(recorder))

    page = await repo.list_replies("c1")

    assert recorder.last.url.params["limit"] == "10"
    assert isinstance(page.items[0], CommentReply)


@pytest.mark.asyncio
async def test_create_comment_parses_reply():
    created = {
        "id": "r9",
        "post_id": "p1",
        "parent_id": "c1",
        "content": "Thanks",
        "author": {"id": "u1", "name": "Alice"},
    }
    recorder = Recorder(created)
    repo = HttpCommentsRepository(_client(recorder))

    result = await repo.create_comment("p1", {"content": " Thanks ", "parent_id": "c1"})

    assert isinstance(result, CommentReply)
    assert recorder.last_json == {"content": "Thanks", "parent_id": "c1", "mentioned_user_ids": []}


# =============================================================================
# Users and Admin
# =============================================================================


@pytest.mark.asyncio
async def test_user_posts_status_filter():
    recorder = Recorder({"posts": []})
    repo = HttpUsersRepository(_client(recorder))

    await repo.list_user_posts("u1", status=PostStatus.REJECTED, limit=5)

    assert recorder.last.url.path == "/users/u1/posts"
    assert dict(recorder.last.url.params) == {"status": "rejected", "page": "1", "limit": "5"}


@pytest.mark.asyncio
async def test_update_user_sends_only_set_fields():
    recorder = Recorder(USER)
    repo = HttpUsersRepository(_client(recorder))

    user = await repo.update_user("u1", {"bio": "Noodles"})

    assert recorder.last.method == "PUT"
    assert recorder.last_json == {"bio": "Noodles"}
    assert user.id == "u1"


@pytest.mark.asyncio
async def test_search_users_route():
    recorder = Recorder({"users": [USER], "pagination": {"page": 1, "limit": 20, "total": 1}})
    repo = HttpUsersRepository(_client(recorder))

    page = await repo.search_users(" alice ")

    assert recorder.last.url.path == "/search/users"
    assert dict(recorder.last.url.params) == {"q": "alice", "page": "1", "limit": "20"}
    assert [u.id for u in page.items] == ["u1"]


@pytest.mark.asyncio
async def test_blank_search_never_sent():
    recorder = Recorder({"users": []})
    repo = HttpUsersRepository(_client(recorder))

    with pytest.raises(InvalidInputError):
        await repo.search_users("  ")
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_stats_routes():
    recorder = Recorder({"post_count": 3, "pending_posts": 2})
    users = HttpUsersRepository(_client(recorder))
    admin = HttpAdminRepository(_client(recorder))

    assert (await users.get_user_stats("u 1"))["post_count"] == 3
    assert recorder.last.url.raw_path == b"/stats/user/u%201"
    assert (await admin.get_platform_stats())["pending_posts"] == 2
    assert recorder.last.url.path == "/stats/platform"


@pytest.mark.asyncio
async def test_admin_user_filters():
    recorder = Recorder({"users": [USER]})
    repo = HttpAdminRepository(_client(recorder))

    await repo.list_users(role="admin", is_active=False)

    assert dict(recorder.last.url.params) == {
        "role": "admin",
        "is_active": "false",
        "page": "1",
        "limit": "20",
    }


@pytest.mark.asyncio
async def test_admin_review_route():
    recorder = Recorder({"post_id": "p4", "status": "approved", "reviewed_at": "x"})
    repo = HttpAdminRepository(_client(recorder))

    await repo.review_post("p4", {"status": "approved", "feedback": "ok"})

    assert (recorder.last.method, recorder.last.url.path) == ("PUT", "/admin/posts/p4/review")
    assert recorder.last_json == {"status": "approved", "feedback": "ok"}


@pytest.mark.asyncio
async def test_admin_comment_list_mixes_levels():
    recorder = Recorder(
        {
            "comments": [
                {"id": "c1", "post_id": "p1", "content": "A", "author": {"id": "u2", "name": "B"}},
                {
                    "id": "r1",
                    "post_id": "p1",
                    "parent_id": "c1",
                    "content": "B",
                    "author": {"id": "u3", "name": "C"},
                },
            ]
        }
    )
    repo = HttpAdminRepository(_client(recorder))

    page = await repo.list_comments(post_id="p1")

    assert isinstance(page.items[0], Comment)
    assert isinstance(page.items[1], CommentReply)
    assert page.pagination.total == 2


# =============================================================================
# Auth
# =============================================================================


@pytest.mark.asyncio
async def test_login_parses_payload():
    recorder = Recorder({"token": "t-1", "user": USER})
    repo = HttpAuthRepository(_client(recorder))

    payload = await repo.login({"email": "ALICE@campus.edu", "password": "secret1"})

    assert payload.token == "t-1"
    assert recorder.last_json == {"email": "alice@campus.edu", "password": "secret1"}


@pytest.mark.asyncio
async def test_malformed_login_response():
    recorder = Recorder({"token": "t-1"})
    repo = HttpAuthRepository(_client(recorder))
    with pytest.raises(RemoteError):
        await repo.login({"email": "alice@campus.edu", "password": "secret1"})
