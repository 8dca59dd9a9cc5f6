"""Domain models for CampusFeed.

This module defines the Pydantic models shared by every layer:

1. Enumerations (roles, post variants, moderation states)
2. Users and authors
3. Posts, a discriminated union keyed on ``post_type``
4. Comments and replies (thread depth capped at two)
5. Write inputs, validated per variant before any store mutation
6. List filters and the pagination envelope
"""

import re
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from campusfeed.errors import InvalidInputError
from campusfeed.utils import clean_strings, ensure_list, parse_datetime

MAX_TAGS = 10
MAX_IMAGES = 9
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

# =============================================================================
# Section 1: Enumerations
# =============================================================================


class Role(StrEnum):
    """User roles, ordered from least to most authority."""

    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class PostType(StrEnum):
    SHARE = "share"
    SEEKING = "seeking"
    COMPANION = "companion"


class ShareType(StrEnum):
    RECOMMEND = "recommend"
    WARNING = "warning"


class Category(StrEnum):
    FOOD = "food"
    RECIPE = "recipe"


class PostStatus(StrEnum):
    """Moderation state of a post."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MeetingStatus(StrEnum):
    OPEN = "open"
    FULL = "full"
    CLOSED = "closed"


class SortBy(StrEnum):
    """Feed ordering: newest first, most liked, or most recently active."""

    LATEST = "latest"
    HOT = "hot"
    TRENDING = "trending"


# =============================================================================
# Section 2: Users
# =============================================================================


class UserStats(BaseModel):
    """Aggregate counters shown on a profile."""

    model_config = ConfigDict(extra="ignore")

    post_count: int = Field(0, ge=0)
    like_count: int = Field(0, ge=0)
    favorite_count: int = Field(0, ge=0)
    follower_count: int = Field(0, ge=0)
    following_count: int = Field(0, ge=0)


class User(BaseModel):
    """Campus user account.

    Attributes:
        id: Unique user ID
        name: Display name
        email: Login email
        role: Authority level
        avatar_url: Avatar image URL
        hometown: Free-text hometown
        bio: Short self-introduction
        gender: Free-text gender
        is_active: False once an admin disables the account
        is_following: Whether the viewer follows this user (viewer-scoped)
        stats: Profile counters
        created_at: Account creation timestamp (UTC)
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    email: Optional[str] = None
    role: Role = Role.USER
    avatar_url: Optional[str] = None
    hometown: Optional[str] = None
    bio: Optional[str] = None
    gender: Optional[str] = None
    is_active: bool = True
    is_following: Optional[bool] = None
    stats: UserStats = Field(default_factory=UserStats)
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Any) -> Optional[datetime]:
        return parse_datetime(v)


class PostAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    avatar_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "PostAuthor":
        return cls(id=user.id, name=user.name, avatar_url=user.avatar_url)


class AuthPayload(BaseModel):
    """Token and profile returned by login and registration."""

    model_config = ConfigDict(extra="ignore")

    token: str
    user: User


# =============================================================================
# Section 3: Posts
# =============================================================================


class PostStats(BaseModel):
    """Engagement counters; never negative."""

    model_config = ConfigDict(extra="ignore")

    like_count: int = Field(0, ge=0)
    favorite_count: int = Field(0, ge=0)
    comment_count: int = Field(0, ge=0)
    view_count: int = Field(0, ge=0)


class BudgetRange(BaseModel):
    """Budget window of a seeking post, in yuan."""

    model_config = ConfigDict(extra="ignore")

    min: float = Field(0, ge=0, allow_inf_nan=False)
    max: float = Field(0, ge=0, allow_inf_nan=False)

    @model_validator(mode="after")
    def _check_order(self) -> "BudgetRange":
        if self.max < self.min:
            raise ValueError("Budget max must be greater than or equal to min")
        return self


class FlavorPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prefer_flavors: list[str] = Field(default_factory=list)
    avoid_flavors: list[str] = Field(default_factory=list)

    @field_validator("prefer_flavors", "avoid_flavors", mode="before")
    @classmethod
    def _clean(cls, v: Any) -> list[str]:
        return clean_strings(v)


class MeetingInfo(BaseModel):
    """Meetup details of a companion post.

    Attributes:
        meeting_time: When the group meets
        location: Where the group meets
        max_people: Capacity, at least one
        current_people: Joined so far, never above capacity
        contact_method: How to reach the organizer
        status: Open for joining, full, or closed
    """

    model_config = ConfigDict(extra="ignore")

    meeting_time: Optional[datetime] = None
    location: Optional[str] = None
    max_people: int = Field(2, ge=1)
    current_people: int = Field(1, ge=0)
    contact_method: Optional[str] = None
    status: MeetingStatus = MeetingStatus.OPEN

    @field_validator("meeting_time", mode="before")
    @classmethod
    def _coerce_meeting_time(cls, v: Any) -> Optional[datetime]:
        return parse_datetime(v)

    @model_validator(mode="after")
    def _check_capacity(self) -> "MeetingInfo":
        if self.current_people > self.max_people:
            raise ValueError("current_people cannot exceed max_people")
        return self


class PostBase(BaseModel):
    """Fields shared by every post variant."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    content: str
    category: Category = Category.FOOD
    canteen: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    author: PostAuthor
    stats: PostStats = Field(default_factory=PostStats)
    is_liked: bool = False
    is_favorited: bool = False
    status: PostStatus = PostStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    review_feedback: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v: Any) -> list[str]:
        return clean_strings(v)[:MAX_TAGS]

    @field_validator("images", mode="before")
    @classmethod
    def _normalize_images(cls, v: Any) -> list[str]:
        return clean_strings(v)[:MAX_IMAGES]

    @field_validator("created_at", "updated_at", "reviewed_at", mode="before")
    @classmethod
    def _coerce_timestamps(cls, v: Any) -> Optional[datetime]:
        return parse_datetime(v)


class SharePost(PostBase):
    post_type: Literal["share"] = "share"
    share_type: ShareType = ShareType.RECOMMEND
    cuisine: Optional[str] = None
    flavors: list[str] = Field(default_factory=list)
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    @field_validator("flavors", mode="before")
    @classmethod
    def _clean_flavors(cls, v: Any) -> list[str]:
        return clean_strings(v)


class SeekingPost(PostBase):
    post_type: Literal["seeking"] = "seeking"
    budget_range: Optional[BudgetRange] = None
    preferences: Optional[FlavorPreferences] = None


class CompanionPost(PostBase):
    post_type: Literal["companion"] = "companion"
    meeting_info: MeetingInfo


Post = Annotated[
    Union[SharePost, SeekingPost, CompanionPost],
    Field(discriminator="post_type"),
]

post_adapter: TypeAdapter[Post] = TypeAdapter(Post)
post_list_adapter: TypeAdapter[list[Post]] = TypeAdapter(list[Post])


def parse_post(data: Any) -> Post:
    """Validate a raw post payload into its variant model."""
    return post_adapter.validate_python(data)


# =============================================================================
# Section 4: Comments
# =============================================================================


class MentionedUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str


class CommentAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    avatar_url: Optional[str] = None
    is_following: bool = False


class CommentBase(BaseModel):
    """Fields shared by top-level comments and replies.

    Attributes:
        id: Unique comment ID
        post_id: Owning post
        content: Comment body
        author: Comment author
        mentioned_users: Users mentioned in the body
        like_count: Likes on this comment
        is_liked: Whether the viewer liked it (viewer-scoped)
        is_author: Whether the comment author also wrote the post
        reply_to: User being answered, for replies to replies
        created_at: Creation timestamp (UTC)
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    post_id: str
    content: str
    author: CommentAuthor
    mentioned_users: list[MentionedUser] = Field(default_factory=list)
    like_count: int = Field(0, ge=0)
    is_liked: bool = False
    is_author: bool = False
    reply_to: Optional[MentionedUser] = None
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Any) -> Optional[datetime]:
        return parse_datetime(v)


class CommentReply(CommentBase):
    """Second-level comment; always points at a top-level parent."""

    parent_id: str


class Comment(CommentBase):
    """Top-level comment with a (possibly truncated) preview of its replies."""

    parent_id: None = None
    reply_count: int = Field(0, ge=0)
    replies: list[CommentReply] = Field(default_factory=list)


# =============================================================================
# Section 5: Write Inputs
# =============================================================================


def _check_image_urls(images: list[str]) -> list[str]:
    if len(images) > MAX_IMAGES:
        raise ValueError(f"At most {MAX_IMAGES} images are allowed")
    for url in images:
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"Image must be an http(s) URL: {url}")
    return images


class PostInputBase(BaseModel):
    """Fields shared by every post create/update payload.

    Unknown fields (for example seeking-only fields on a share post) are
    dropped rather than rejected.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: str = Field(..., min_length=2, max_length=100)
    content: str = Field(..., min_length=5, max_length=5000)
    category: Category = Category.FOOD
    canteen: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)

    @field_validator("tags", "images", mode="before")
    @classmethod
    def _clean_lists(cls, v: Any) -> list[str]:
        return clean_strings(v)

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, v: list[str]) -> list[str]:
        if len(v) > MAX_TAGS:
            raise ValueError(f"At most {MAX_TAGS} tags are allowed")
        return v

    @field_validator("images")
    @classmethod
    def _check_images(cls, v: list[str]) -> list[str]:
        return _check_image_urls(v)

    @field_validator("canteen", mode="after")
    @classmethod
    def _blank_canteen(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class SharePostInput(PostInputBase):
    post_type: Literal["share"] = "share"
    share_type: ShareType
    cuisine: Optional[str] = None
    flavors: list[str] = Field(default_factory=list)
    price: Optional[float] = Field(None, allow_inf_nan=False)

    @field_validator("flavors", mode="before")
    @classmethod
    def _clean_flavors(cls, v: Any) -> list[str]:
        return clean_strings(v)

    @field_validator("price")
    @classmethod
    def _check_price(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v

    @model_validator(mode="after")
    def _require_image(self) -> "SharePostInput":
        if not self.images:
            raise ValueError("A share post needs at least one image")
        return self


class SeekingPostInput(PostInputBase):
    post_type: Literal["seeking"] = "seeking"
    budget_range: Optional[BudgetRange] = None
    preferences: Optional[FlavorPreferences] = None


class CompanionPostInput(PostInputBase):
    post_type: Literal["companion"] = "companion"
    meeting_info: MeetingInfo


PostInput = Annotated[
    Union[SharePostInput, SeekingPostInput, CompanionPostInput],
    Field(discriminator="post_type"),
]

post_input_adapter: TypeAdapter[PostInput] = TypeAdapter(PostInput)


def validate_post_input(data: Any) -> PostInput:
    """Validate a post payload against the variant named by its ``post_type``.

    Accepts a mapping or an already-built input model; models are dumped and
    re-validated so the variant rules always run at the store boundary.

    Raises:
        InvalidInputError: If the payload fails any structural rule
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return post_input_adapter.validate_python(data)
    except ValidationError as exc:
        raise InvalidInputError.from_validation_error(exc) from exc


class CreateCommentInput(BaseModel):
    """Payload for a new comment or reply.

    Attributes:
        content: Comment body
        parent_id: Comment being answered; a reply to a reply is attached to
            the top-level parent
        reply_to_user_id: User being answered
        mentioned_user_ids: Users mentioned in the body
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    content: str = Field(..., min_length=1, max_length=500)
    parent_id: Optional[str] = None
    reply_to_user_id: Optional[str] = None
    mentioned_user_ids: list[str] = Field(default_factory=list)

    @field_validator("mentioned_user_ids", mode="before")
    @classmethod
    def _clean_mentions(cls, v: Any) -> list[str]:
        return clean_strings(v)


class UpdateUserInput(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=30)
    avatar_url: Optional[str] = None
    hometown: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=200)
    gender: Optional[str] = None


class UserSearchInput(BaseModel):
    """Keyword for people search, matched against display names."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    q: str = Field(..., max_length=50)

    @field_validator("q")
    @classmethod
    def _require_keyword(cls, v: str) -> str:
        if not v:
            raise ValueError("Please enter a search keyword")
        return v


class ReviewInput(BaseModel):
    """Moderator decision on a pending post."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    status: PostStatus
    feedback: Optional[str] = Field(None, max_length=500)

    @field_validator("status")
    @classmethod
    def _decision_only(cls, v: PostStatus) -> PostStatus:
        if v not in (PostStatus.APPROVED, PostStatus.REJECTED):
            raise ValueError("Review status must be approved or rejected")
        return v


class LoginInput(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    email: str
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v.lower()


class RegisterInput(LoginInput):
    name: str = Field(..., min_length=1, max_length=30)
    password: str = Field(..., min_length=8, max_length=64)


def validate_input(model: type[BaseModel], data: Any) -> Any:
    """Validate ``data`` into ``model``, raising InvalidInputError on failure."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidInputError.from_validation_error(exc) from exc


# =============================================================================
# Section 6: Filters and Pagination
# =============================================================================


def enum_or_none(enum_cls: type[StrEnum], value: Any) -> Any:
    """Parse a filter value; empty or unknown values mean no filter."""
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


class PostFilters(BaseModel):
    """Feed filters; unknown or empty values mean "no filter".

    Attributes:
        q: Case-insensitive keyword matched against title and content
        category: Restrict to one category
        post_type: Restrict to one post variant
        share_type: Restrict share posts to recommendations or warnings
        tags: Posts must carry every listed tag
        canteen: Exact canteen name
        author_id: Posts written by one user
        status: Moderation state (admin and own-profile lists only)
        sort_by: Ordering of the result
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    q: Optional[str] = None
    category: Optional[Category] = None
    post_type: Optional[PostType] = None
    share_type: Optional[ShareType] = None
    tags: list[str] = Field(default_factory=list)
    canteen: Optional[str] = None
    author_id: Optional[str] = None
    status: Optional[PostStatus] = None
    sort_by: SortBy = SortBy.LATEST

    @field_validator("category", mode="before")
    @classmethod
    def _lenient_category(cls, v: Any) -> Any:
        return enum_or_none(Category, v)

    @field_validator("post_type", mode="before")
    @classmethod
    def _lenient_post_type(cls, v: Any) -> Any:
        return enum_or_none(PostType, v)

    @field_validator("share_type", mode="before")
    @classmethod
    def _lenient_share_type(cls, v: Any) -> Any:
        return enum_or_none(ShareType, v)

    @field_validator("status", mode="before")
    @classmethod
    def _lenient_status(cls, v: Any) -> Any:
        return enum_or_none(PostStatus, v)

    @field_validator("sort_by", mode="before")
    @classmethod
    def _lenient_sort(cls, v: Any) -> Any:
        return enum_or_none(SortBy, v) or SortBy.LATEST

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = v.split(",")
        return clean_strings(ensure_list(v))

    @field_validator("q", "canteen", "author_id", mode="after")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class Pagination(BaseModel):
    """Pagination envelope returned with every list."""

    model_config = ConfigDict(extra="ignore")

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=50)
    total: int = Field(0, ge=0)
    total_pages: int = Field(1, ge=1)


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a list result."""

    items: list[T] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)

    @property
    def has_next(self) -> bool:
        return self.pagination.page < self.pagination.total_pages


__all__ = [
    "MAX_TAGS",
    "MAX_IMAGES",
    "Role",
    "PostType",
    "ShareType",
    "Category",
    "PostStatus",
    "MeetingStatus",
    "SortBy",
    "UserStats",
    "User",
    "PostAuthor",
    "AuthPayload",
    "PostStats",
    "BudgetRange",
    "FlavorPreferences",
    "MeetingInfo",
    "PostBase",
    "SharePost",
    "SeekingPost",
    "CompanionPost",
    "Post",
    "post_adapter",
    "post_list_adapter",
    "parse_post",
    "MentionedUser",
    "CommentAuthor",
    "CommentBase",
    "CommentReply",
    "Comment",
    "PostInputBase",
    "SharePostInput",
    "SeekingPostInput",
    "CompanionPostInput",
    "PostInput",
    "validate_post_input",
    "CreateCommentInput",
    "UpdateUserInput",
    "UserSearchInput",
    "ReviewInput",
    "LoginInput",
    "RegisterInput",
    "validate_input",
    "enum_or_none",
    "PostFilters",
    "Pagination",
    "Page",
]
