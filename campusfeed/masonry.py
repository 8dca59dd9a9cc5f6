"""Masonry (waterfall) feed layout.

Pure functions, no I/O: resolve a column count from the current responsive
breakpoint, estimate each card's height deterministically from its id, and
place cards greedily into the currently shortest column.

Example:
    >>> layout = layout_masonry(posts, columns=2, gap=8)
    >>> layout.columns
    [[0, 3], [1, 2]]
    >>> layout.group(posts)[0][0] is posts[0]
    True
"""

import math
from collections.abc import Callable, Mapping, Sequence
from enum import StrEnum
from typing import Any, TypeVar, Union

from pydantic import BaseModel, Field, model_validator

from campusfeed.config import settings
from campusfeed.utils import id_seed

T = TypeVar("T")

# =============================================================================
# Breakpoints and Column Resolution
# =============================================================================


class Breakpoint(StrEnum):
    BASE = "base"
    SM = "sm"
    MD = "md"
    LG = "lg"
    XL = "xl"


BREAKPOINT_ORDER: tuple[Breakpoint, ...] = (
    Breakpoint.BASE,
    Breakpoint.SM,
    Breakpoint.MD,
    Breakpoint.LG,
    Breakpoint.XL,
)

BREAKPOINT_MIN_WIDTHS: dict[Breakpoint, int] = {
    Breakpoint.BASE: 0,
    Breakpoint.SM: 640,
    Breakpoint.MD: 768,
    Breakpoint.LG: 1024,
    Breakpoint.XL: 1280,
}

DEFAULT_COLUMNS = 2

ColumnsConfig = Union[int, Mapping[str, int], None]


def breakpoint_for_width(width: float) -> Breakpoint:
    """Largest breakpoint whose min-width does not exceed ``width``.

    Example:
        >>> breakpoint_for_width(800)
        <Breakpoint.MD: 'md'>
    """
    current = Breakpoint.BASE
    for bp in BREAKPOINT_ORDER:
        if width >= BREAKPOINT_MIN_WIDTHS[bp]:
            current = bp
    return current


def _as_columns(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return max(1, math.floor(number))


def resolve_columns(config: ColumnsConfig, current: Breakpoint | str = Breakpoint.BASE) -> int:
    """Resolve the column count for the active breakpoint.

    Resolution order: exact breakpoint match, then the nearest smaller
    breakpoint that is defined, then :data:`DEFAULT_COLUMNS`.

    Args:
        config: Fixed count, per-breakpoint mapping, or None
        current: Active breakpoint

    Returns:
        Column count, at least 1

    Example:
        >>> resolve_columns({"base": 1, "md": 3}, "xl")
        3
        >>> resolve_columns({"lg": 4}, "sm")
        2
    """
    if config is None:
        return DEFAULT_COLUMNS
    if not isinstance(config, Mapping):
        columns = _as_columns(config)
        return DEFAULT_COLUMNS if columns is None else columns

    try:
        position = BREAKPOINT_ORDER.index(Breakpoint(current))
    except ValueError:
        position = 0

    for bp in reversed(BREAKPOINT_ORDER[: position + 1]):
        columns = _as_columns(config.get(bp.value))
        if columns is not None:
            return columns
    return DEFAULT_COLUMNS


# =============================================================================
# Height Estimation
# =============================================================================

ASPECT_RATIO_VARIANTS: tuple[float, ...] = (0.7, 0.8, 0.9, 1.0, 1.1, 1.2, 1.35, 1.5)
CARD_IMAGE_WIDTH = 165
TEXT_ONLY_HEIGHT = 120
CARD_INFO_HEIGHT = 88


class HeightBounds(BaseModel):
    """Clamp window for estimated card heights.

    ``min_height`` is at least 40 and ``max_height`` at most 600, with a
    10px minimum spread; out-of-range values are pulled back in.
    """

    min_height: float = 80
    max_height: float = 220

    @model_validator(mode="after")
    def _clamp(self) -> "HeightBounds":
        max_height = min(600, max(self.max_height, max(40, self.min_height) + 10))
        self.min_height = min(max(40, self.min_height), max_height - 10)
        self.max_height = max_height
        return self

    @classmethod
    def from_settings(cls) -> "HeightBounds":
        return cls(
            min_height=settings.waterfall_min_height,
            max_height=settings.waterfall_max_height,
        )

    def clamp(self, height: float) -> float:
        return min(self.max_height, max(self.min_height, height))


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def aspect_ratio_for(item_id: str | None) -> float:
    """Pick an aspect ratio variant from the id's character-code sum."""
    return ASPECT_RATIO_VARIANTS[id_seed(item_id) % len(ASPECT_RATIO_VARIANTS)]


def estimate_post_card_height(item: Any, bounds: HeightBounds | None = None) -> float:
    """Estimate a post card's height from its id and whether it has images.

    The same id always yields the same height, so re-renders never jitter.

    Args:
        item: Post model or mapping with ``id`` and ``images``
        bounds: Clamp window (defaults to the configured waterfall bounds)

    Returns:
        Estimated height in layout units
    """
    bounds = bounds or HeightBounds.from_settings()
    if _field(item, "images"):
        media_height = CARD_IMAGE_WIDTH / aspect_ratio_for(_field(item, "id"))
    else:
        media_height = TEXT_ONLY_HEIGHT
    return bounds.clamp(media_height + CARD_INFO_HEIGHT)


# =============================================================================
# Greedy Placement
# =============================================================================


class Placement(BaseModel):
    """Where one item landed."""

    index: int
    column: int
    top: float
    height: float


class MasonryLayout(BaseModel):
    """Result of a layout pass.

    Attributes:
        columns: Item indices per column, in placement order
        placements: One entry per input item, in input order
        column_heights: Accumulated height of each column
    """

    columns: list[list[int]] = Field(default_factory=list)
    placements: list[Placement] = Field(default_factory=list)
    column_heights: list[float] = Field(default_factory=list)

    def group(self, items: Sequence[T]) -> list[list[T]]:
        """Map the index columns back onto the original items."""
        return [[items[i] for i in column] for column in self.columns]

    @property
    def total_height(self) -> float:
        return max(self.column_heights, default=0.0)


def layout_masonry(
    items: Sequence[T],
    columns: int,
    gap: float = 0,
    estimate_height: Callable[[T], float] | None = None,
) -> MasonryLayout:
    """Place items into columns, shortest column first.

    Each item goes to the column with the smallest accumulated height (ties
    go to the lowest index). A column's first item adds only its height;
    later items add ``gap + height``. Negative estimates count as zero. No
    rebalancing happens after placement.

    Args:
        items: Items in feed order
        columns: Column count (values below 1 are treated as 1)
        gap: Vertical gap between stacked items
        estimate_height: Height estimator (defaults to the post card estimate)

    Returns:
        MasonryLayout with per-column indices and per-item placements
    """
    column_count = max(1, int(columns))
    gap = max(0.0, float(gap))
    estimate = estimate_height or estimate_post_card_height

    layout = MasonryLayout(
        columns=[[] for _ in range(column_count)],
        column_heights=[0.0] * column_count,
    )

    for index, item in enumerate(items):
        target = 0
        for col in range(1, column_count):
            if layout.column_heights[col] < layout.column_heights[target]:
                target = col

        height = max(0.0, float(estimate(item)))
        is_first = not layout.columns[target]
        top = layout.column_heights[target] + (0.0 if is_first else gap)

        layout.columns[target].append(index)
        layout.placements.append(Placement(index=index, column=target, top=top, height=height))
        layout.column_heights[target] = top + height

    return layout


def layout_for_width(
    items: Sequence[T],
    width: float,
    config: ColumnsConfig = None,
    gap: float = 0,
    estimate_height: Callable[[T], float] | None = None,
) -> MasonryLayout:
    """Resolve columns for a viewport width, then lay the items out."""
    columns = resolve_columns(config, breakpoint_for_width(width))
    return layout_masonry(items, columns, gap, estimate_height)


__all__ = [
    "Breakpoint",
    "BREAKPOINT_ORDER",
    "BREAKPOINT_MIN_WIDTHS",
    "DEFAULT_COLUMNS",
    "breakpoint_for_width",
    "resolve_columns",
    "ASPECT_RATIO_VARIANTS",
    "HeightBounds",
    "aspect_ratio_for",
    "estimate_post_card_height",
    "Placement",
    "MasonryLayout",
    "layout_masonry",
    "layout_for_width",
]
