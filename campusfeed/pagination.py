"""Page/limit normalization and slicing shared by every list operation.

Example:
    >>> from campusfeed.pagination import paginate
    >>> page = paginate(list(range(45)), page=3, limit=20)
    >>> page.items
    [40, 41, 42, 43, 44]
    >>> page.pagination.total_pages
    3
"""

import math
from collections.abc import Sequence
from typing import Any, TypeVar

from campusfeed.config import settings
from campusfeed.models import Page, Pagination

T = TypeVar("T")

DEFAULT_PAGE = 1
REPLIES_PAGE_SIZE = 10


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return math.floor(number)


def normalize_page_params(
    page: Any = None,
    limit: Any = None,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> tuple[int, int]:
    """Clamp raw page/limit values into a valid window.

    Missing or non-numeric values fall back to the defaults; numbers are
    floored, ``page`` is at least 1 and ``limit`` lies in ``[1, max_limit]``.

    Args:
        page: Requested page number
        limit: Requested page size
        default_limit: Size used when ``limit`` is missing (settings default)
        max_limit: Upper bound for ``limit`` (settings default, at most 50)

    Returns:
        Tuple of (page, limit)

    Example:
        >>> normalize_page_params("2", 500)
        (2, 50)
        >>> normalize_page_params(0, -3)
        (1, 1)
    """
    max_limit = max_limit or settings.max_page_size
    default_limit = min(default_limit or settings.default_page_size, max_limit)

    page_value = _to_int(page)
    limit_value = _to_int(limit)

    normalized_page = DEFAULT_PAGE if page_value is None else max(1, page_value)
    if limit_value is None:
        normalized_limit = default_limit
    else:
        normalized_limit = min(max_limit, max(1, limit_value))
    return normalized_page, normalized_limit


def total_pages_for(total: int, limit: int) -> int:
    """Number of pages for ``total`` items; never less than one."""
    return max(1, math.ceil(max(0, total) / max(1, limit)))


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(
        page=page,
        limit=limit,
        total=max(0, total),
        total_pages=total_pages_for(total, limit),
    )


def paginate(
    items: Sequence[T],
    page: Any = None,
    limit: Any = None,
    default_limit: int | None = None,
) -> Page[T]:
    """Slice an already filtered and ordered sequence into one page.

    Pages past the end are empty but still report the true totals.

    Args:
        items: Full ordered result
        page: Requested page number
        limit: Requested page size
        default_limit: Size used when ``limit`` is missing

    Returns:
        Page with the sliced items and its pagination envelope
    """
    page_number, page_size = normalize_page_params(page, limit, default_limit)
    start = (page_number - 1) * page_size
    return Page(
        items=list(items[start : start + page_size]),
        pagination=build_pagination(page_number, page_size, len(items)),
    )


__all__ = [
    "DEFAULT_PAGE",
    "REPLIES_PAGE_SIZE",
    "normalize_page_params",
    "total_pages_for",
    "build_pagination",
    "paginate",
]
