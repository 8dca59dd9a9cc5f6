"""Deterministic seed data for the in-memory repositories.

Every call to :func:`build_seed` returns fresh objects, so each repository
family (and each test) starts from an identical, isolated state.

Seed accounts all use the password ``password123``:

=================  ===========  ==================
email              id           role
=================  ===========  ==================
root@campus.edu    u_root       super_admin
admin@campus.edu   u_admin      admin
alice@campus.edu   u1           user
bob@campus.edu     u2           user
carol@campus.edu   u3           user
dave@campus.edu    u4           user
eve@campus.edu     u5           user (disabled)
=================  ===========  ==================
"""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

from campusfeed.models import (
    Comment,
    CommentAuthor,
    CommentReply,
    MentionedUser,
    Post,
    PostAuthor,
    Role,
    User,
    parse_post,
)

SEED_PASSWORD = "password123"
SEED_EPOCH = datetime(2024, 9, 1, 8, 0, tzinfo=UTC)


class SeedData(BaseModel):
    """Initial contents of every in-memory store.

    Attributes:
        users: Accounts
        credentials: Email to password
        posts: Posts in all moderation states
        comments: Top-level comments and replies, flat
        post_likes: (user_id, post_id) edges
        post_favorites: (user_id, post_id) edges
        comment_likes: (user_id, comment_id) edges
        follows: (follower_id, followee_id) edges
    """

    users: list[User] = Field(default_factory=list)
    credentials: dict[str, str] = Field(default_factory=dict)
    posts: list[Post] = Field(default_factory=list)
    comments: list[Comment | CommentReply] = Field(default_factory=list)
    post_likes: set[tuple[str, str]] = Field(default_factory=set)
    post_favorites: set[tuple[str, str]] = Field(default_factory=set)
    comment_likes: set[tuple[str, str]] = Field(default_factory=set)
    follows: set[tuple[str, str]] = Field(default_factory=set)


def _at(hours: int) -> datetime:
    return SEED_EPOCH + timedelta(hours=hours)


def _image(name: str) -> str:
    return f"https://images.example.invalid/{name}.jpg"


def _users() -> list[User]:
    rows = [
        ("u_root", "Root", "root@campus.edu", Role.SUPER_ADMIN, True, None),
        ("u_admin", "Admin Lin", "admin@campus.edu", Role.ADMIN, True, None),
        ("u1", "Alice Chen", "alice@campus.edu", Role.USER, True, "Chengdu"),
        ("u2", "Bob Wang", "bob@campus.edu", Role.USER, True, "Harbin"),
        ("u3", "Carol Li", "carol@campus.edu", Role.USER, True, "Guangzhou"),
        ("u4", "Dave Zhao", "dave@campus.edu", Role.USER, True, "Xi'an"),
        ("u5", "Eve Sun", "eve@campus.edu", Role.USER, False, None),
    ]
    return [
        User(
            id=user_id,
            name=name,
            email=email,
            role=role,
            is_active=active,
            hometown=hometown,
            avatar_url=f"https://avatars.example.invalid/{user_id}.png",
            created_at=_at(-24 * (len(rows) - i)),
        )
        for i, (user_id, name, email, role, active, hometown) in enumerate(rows)
    ]


def _posts(users: dict[str, User]) -> list[Post]:
    def author(user_id: str) -> dict:
        return PostAuthor.from_user(users[user_id]).model_dump()

    raw = [
        {
            "id": "p1",
            "post_type": "share",
            "title": "Spicy noodles at Canteen 2",
            "content": "The dan dan noodles on the second floor are worth the queue.",
            "category": "food",
            "canteen": "Canteen 2",
            "tags": ["noodles", "spicy"],
            "images": [_image("p1-a"), _image("p1-b")],
            "author": author("u1"),
            "share_type": "recommend",
            "cuisine": "Sichuan",
            "flavors": ["spicy", "numbing"],
            "price": 14,
            "stats": {"like_count": 12, "favorite_count": 3, "comment_count": 4, "view_count": 120},
            "status": "approved",
            "created_at": _at(1),
            "updated_at": _at(30),
            "reviewed_at": _at(2),
        },
        {
            "id": "p2",
            "post_type": "seeking",
            "title": "Cheap breakfast near the library?",
            "content": "Looking for something warm under 10 yuan before 8am classes.",
            "category": "food",
            "canteen": "Library area",
            "tags": ["breakfast", "budget"],
            "author": author("u2"),
            "budget_range": {"min": 3, "max": 10},
            "preferences": {"prefer_flavors": ["savory"], "avoid_flavors": ["sweet"]},
            "stats": {"like_count": 4, "favorite_count": 1, "comment_count": 1, "view_count": 45},
            "status": "approved",
            "created_at": _at(5),
            "updated_at": _at(5),
            "reviewed_at": _at(6),
        },
        {
            "id": "p3",
            "post_type": "companion",
            "title": "Hotpot this Friday, 2 spots left",
            "content": "Going to the hotpot place by the east gate, splitting the bill.",
            "category": "food",
            "canteen": "East gate",
            "tags": ["hotpot", "friday"],
            "author": author("u3"),
            "meeting_info": {
                "meeting_time": _at(96),
                "location": "East gate",
                "max_people": 4,
                "current_people": 2,
                "contact_method": "WeChat: carol_li",
                "status": "open",
            },
            "stats": {"like_count": 7, "favorite_count": 2, "comment_count": 0, "view_count": 60},
            "status": "approved",
            "created_at": _at(10),
            "updated_at": _at(40),
            "reviewed_at": _at(11),
        },
        {
            "id": "p4",
            "post_type": "share",
            "title": "New bubble tea stand",
            "content": "Tried the brown sugar milk tea at the new stand, too sweet for me.",
            "category": "food",
            "canteen": "Canteen 1",
            "tags": ["drinks"],
            "images": [_image("p4")],
            "author": author("u2"),
            "share_type": "warning",
            "price": 12,
            "status": "pending",
            "created_at": _at(20),
            "updated_at": _at(20),
        },
        {
            "id": "p5",
            "post_type": "share",
            "title": "Mystery meat",
            "content": "Not sure what this was but do not order it.",
            "category": "food",
            "tags": ["avoid"],
            "images": [_image("p5")],
            "author": author("u1"),
            "share_type": "warning",
            "status": "rejected",
            "review_feedback": "Please describe the dish and the canteen.",
            "created_at": _at(22),
            "updated_at": _at(22),
            "reviewed_at": _at(23),
        },
        {
            "id": "p6",
            "post_type": "seeking",
            "title": "Dorm-friendly recipes with a rice cooker",
            "content": "What can I cook with only a rice cooker and a kettle?",
            "category": "recipe",
            "tags": ["dorm", "rice cooker"],
            "author": author("u4"),
            "budget_range": {"min": 0, "max": 30},
            "stats": {"like_count": 9, "favorite_count": 5, "comment_count": 0, "view_count": 88},
            "status": "approved",
            "created_at": _at(26),
            "updated_at": _at(26),
            "reviewed_at": _at(27),
        },
        {
            "id": "p7",
            "post_type": "share",
            "title": "Canteen 3 dumplings went downhill",
            "content": "Skins are thick now and the filling is mostly cabbage.",
            "category": "food",
            "canteen": "Canteen 3",
            "tags": ["dumplings"],
            "images": [_image("p7")],
            "author": author("u3"),
            "share_type": "warning",
            "cuisine": "Northern",
            "price": 9.5,
            "stats": {"like_count": 2, "favorite_count": 1, "comment_count": 0, "view_count": 33},
            "status": "approved",
            "created_at": _at(28),
            "updated_at": _at(28),
            "reviewed_at": _at(29),
        },
        {
            "id": "p8",
            "post_type": "companion",
            "title": "Lunch buddy for the Muslim canteen",
            "content": "Anyone up for hand-pulled noodles on Tuesdays?",
            "category": "food",
            "canteen": "Muslim canteen",
            "author": author("u1"),
            "meeting_info": {"max_people": 2, "current_people": 1, "location": "Muslim canteen"},
            "status": "pending",
            "created_at": _at(31),
            "updated_at": _at(31),
        },
    ]
    return [parse_post(item) for item in raw]


def _comments(users: dict[str, User], posts: dict[str, Post]) -> list[Comment | CommentReply]:
    def author(user_id: str) -> CommentAuthor:
        user = users[user_id]
        return CommentAuthor(id=user.id, name=user.name, avatar_url=user.avatar_url)

    def is_author(post_id: str, user_id: str) -> bool:
        return posts[post_id].author.id == user_id

    def mention(user_id: str) -> MentionedUser:
        return MentionedUser(id=user_id, name=users[user_id].name)

    return [
        Comment(
            id="c1",
            post_id="p1",
            content="Agreed, the chili oil is homemade.",
            author=author("u2"),
            like_count=3,
            is_author=is_author("p1", "u2"),
            reply_count=2,
            created_at=_at(3),
        ),
        CommentReply(
            id="r1",
            post_id="p1",
            parent_id="c1",
            content="Is it still 14 yuan?",
            author=author("u3"),
            is_author=is_author("p1", "u3"),
            created_at=_at(4),
        ),
        CommentReply(
            id="r2",
            post_id="p1",
            parent_id="c1",
            content="Yes, same price as last term.",
            author=author("u1"),
            is_author=is_author("p1", "u1"),
            reply_to=mention("u3"),
            mentioned_users=[mention("u3")],
            like_count=1,
            created_at=_at(5),
        ),
        Comment(
            id="c2",
            post_id="p1",
            content="Go before 11:30 or the queue is huge.",
            author=author("u3"),
            is_author=is_author("p1", "u3"),
            created_at=_at(8),
        ),
        Comment(
            id="c3",
            post_id="p2",
            content="The steamed buns at the north gate are 2 yuan each.",
            author=author("u1"),
            like_count=2,
            is_author=is_author("p2", "u1"),
            created_at=_at(7),
        ),
    ]


def build_seed() -> SeedData:
    """Build a fresh, internally consistent seed dataset."""
    users = _users()
    by_id = {user.id: user for user in users}
    posts = _posts(by_id)
    posts_by_id = {post.id: post for post in posts}
    return SeedData(
        users=users,
        credentials={user.email: SEED_PASSWORD for user in users if user.email},
        posts=posts,
        comments=_comments(by_id, posts_by_id),
        post_likes={("u2", "p1"), ("u3", "p1"), ("u1", "p3")},
        post_favorites={("u2", "p1"), ("u1", "p7")},
        comment_likes={("u1", "c1")},
        follows={("u1", "u2"), ("u2", "u1"), ("u3", "u1")},
    )


__all__ = ["SEED_PASSWORD", "SeedData", "build_seed"]
