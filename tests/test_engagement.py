"""Tests for engagement toggles and the follow graph."""

import pytest

from campusfeed.engagement import EngagementService, apply_delta, apply_toggle, toggle
from campusfeed.errors import AuthenticationError, InvalidInputError, NotFoundError
from campusfeed.metrics import get_sample_value


@pytest.fixture
def engagement(repos):
    return EngagementService(repos.posts, repos.comments, repos.users, repos.session)


# =============================================================================
# Transition Function
# =============================================================================


class TestToggle:
    @pytest.mark.parametrize(
        "current,requested,expected",
        [
            (False, True, (True, 1)),
            (True, False, (False, -1)),
            (True, True, (True, 0)),
            (False, False, (False, 0)),
        ],
    )
    def test_toggle(self, current, requested, expected):
        assert toggle(current, requested) == expected

    def test_apply_delta_clamps_at_zero(self):
        assert apply_delta(0, -1) == 0
        assert apply_delta(3, -1) == 2
        assert apply_delta(3, 1) == 4

    def test_apply_toggle_never_negative(self):
        assert apply_toggle(True, 0, False) == (False, 0)
        assert apply_toggle(False, 5, True) == (True, 6)


# =============================================================================
# Engagement Service
# =============================================================================


@pytest.mark.asyncio
async def test_like_is_idempotent(repos, sign_in, engagement):
    sign_in("u1")

    first = await engagement.like("p1")
    second = await engagement.like("p1")

    assert first == {"is_liked": True, "like_count": 13}
    assert second == {"is_liked": True, "like_count": 13}


@pytest.mark.asyncio
async def test_unlike_is_idempotent(repos, sign_in, engagement):
    sign_in("u2")  # already likes p1

    first = await engagement.unlike("p1")
    second = await engagement.unlike("p1")

    assert first == {"is_liked": False, "like_count": 11}
    assert second == first


@pytest.mark.asyncio
async def test_like_state_visible_on_reads(repos, sign_in, engagement):
    sign_in("u4")
    await engagement.like("p6")

    post = await repos.posts.get_post("p6")
    assert post.is_liked is True
    assert post.stats.like_count == 10


@pytest.mark.asyncio
async def test_count_never_goes_negative(repos, sign_in, engagement, seeking_input):
    sign_in("u1")
    created = await repos.posts.create_post(seeking_input)

    state = await engagement.unlike(created["id"])

    assert state == {"is_liked": False, "like_count": 0}


@pytest.mark.asyncio
async def test_favorite_round_trip(repos, sign_in, engagement):
    sign_in("u1")

    assert await engagement.favorite("p1") == {"is_favorited": True, "favorite_count": 4}
    assert await engagement.favorite("p1") == {"is_favorited": True, "favorite_count": 4}
    assert await engagement.unfavorite("p1") == {"is_favorited": False, "favorite_count": 3}


@pytest.mark.asyncio
async def test_comment_like(repos, sign_in, engagement):
    sign_in("u1")  # already likes c1

    assert await engagement.like_comment("c1") == {"is_liked": True, "like_count": 3}
    assert await engagement.unlike_comment("c1") == {"is_liked": False, "like_count": 2}
    assert await engagement.unlike_comment("c1") == {"is_liked": False, "like_count": 2}


@pytest.mark.asyncio
async def test_engagement_requires_sign_in(engagement):
    with pytest.raises(AuthenticationError):
        await engagement.like("p1")


@pytest.mark.asyncio
async def test_blank_id_rejected(sign_in, engagement):
    sign_in("u1")
    with pytest.raises(InvalidInputError):
        await engagement.like("  ")


@pytest.mark.asyncio
async def test_hidden_post_reads_as_missing(sign_in, engagement):
    sign_in("u1")  # p4 is pending and belongs to u2
    with pytest.raises(NotFoundError):
        await engagement.like("p4")


@pytest.mark.asyncio
async def test_operations_are_counted(sign_in, engagement):
    sign_in("u1")
    labels = {"aggregate": "posts", "operation": "like", "status": "success"}
    before = get_sample_value("repository_operations_total", labels) or 0

    await engagement.like("p1")

    assert get_sample_value("repository_operations_total", labels) == before + 1


# =============================================================================
# Follow Graph
# =============================================================================


@pytest.mark.asyncio
async def test_follow_moves_both_counters(repos, sign_in, engagement):
    sign_in("u1")

    state = await engagement.follow("u3")

    assert state == {"is_following": True, "follower_count": 1, "following_count": 2}
    follower = await repos.users.get_user("u1")
    followee = await repos.users.get_user("u3")
    assert follower.stats.following_count == 2
    assert followee.stats.follower_count == 1
    assert followee.is_following is True


@pytest.mark.asyncio
async def test_follow_then_unfollow_restores_counts(repos, sign_in, engagement):
    sign_in("u1")

    await engagement.follow("u4")
    await engagement.follow("u4")
    state = await engagement.unfollow("u4")

    assert state == {"is_following": False, "follower_count": 0, "following_count": 1}


@pytest.mark.asyncio
async def test_cannot_follow_self(sign_in, engagement):
    sign_in("u1")
    with pytest.raises(InvalidInputError, match="yourself"):
        await engagement.follow("u1")


@pytest.mark.asyncio
async def test_repository_also_rejects_self_follow(repos, sign_in):
    sign_in("u2")
    with pytest.raises(InvalidInputError):
        await repos.users.follow_user("u2")


@pytest.mark.asyncio
async def test_follow_unknown_user(sign_in, engagement):
    sign_in("u1")
    with pytest.raises(NotFoundError):
        await engagement.follow("nobody")
