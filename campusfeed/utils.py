"""Utility functions for CampusFeed.

This module provides common helpers for datetime handling, id generation,
list normalization and URL path encoding.
"""

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00Z")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def utc_now_iso() -> str:
    """Get current UTC timestamp as ISO8601 string with 'Z' suffix."""
    return utc_now().isoformat().replace("+00:00", "Z")


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Example:
        >>> dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        >>> format_iso(dt)
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    return dt.isoformat().replace("+00:00", "Z")


def redact_token(token: str | None) -> str:
    """Redact sensitive tokens for safe logging.

    Example:
        >>> redact_token("abcdefghijklmnop")
        'abcdefgh...mnop'
        >>> redact_token("short")
        '***'
        >>> redact_token(None)
        'None'
    """
    if not token:
        return "None"
    return f"{token[:8]}...{token[-4:]}" if len(token) > 12 else "***"


def new_id(prefix: str) -> str:
    """Generate a short unique id with a readable prefix.

    Example:
        >>> new_id("post").startswith("post_")
        True
    """
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def id_seed(value: str | None) -> int:
    """Sum of character codes of an id, used as a stable pseudo-random seed.

    Example:
        >>> id_seed("ab")
        195
        >>> id_seed("")
        0
    """
    if not value:
        return 0
    return sum(ord(ch) for ch in value)


def clean_strings(values: Iterable[Any] | None) -> list[str]:
    """Trim strings, drop blanks and duplicates, keep first-seen order.

    Example:
        >>> clean_strings([" spicy ", "", "spicy", "sweet"])
        ['spicy', 'sweet']
    """
    if not values:
        return []
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text and text not in seen:
            seen.add(text)
            result.append(text)
    return result


def encode_path_param(value: str) -> str:
    """Percent-encode a resource id for path substitution.

    Example:
        >>> encode_path_param("a/b c")
        'a%2Fb%20c'
    """
    return quote(str(value), safe="")


def ensure_list(value: Any) -> list[Any]:
    """Ensure value is a list.

    Example:
        >>> ensure_list("a,b")
        ['a,b']
        >>> ensure_list(None)
        []
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, (tuple, set)):
        return list(value)
    return [value]
