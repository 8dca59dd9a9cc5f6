"""Tests for the masonry layout engine."""

import pytest

from campusfeed.masonry import (
    Breakpoint,
    HeightBounds,
    aspect_ratio_for,
    breakpoint_for_width,
    estimate_post_card_height,
    layout_for_width,
    layout_masonry,
    resolve_columns,
)
from campusfeed.seed import build_seed

WIDE = HeightBounds(min_height=40, max_height=600)


# =============================================================================
# Column Resolution
# =============================================================================


class TestBreakpoints:
    @pytest.mark.parametrize(
        "width,expected",
        [
            (0, Breakpoint.BASE),
            (639, Breakpoint.BASE),
            (640, Breakpoint.SM),
            (800, Breakpoint.MD),
            (1024, Breakpoint.LG),
            (2560, Breakpoint.XL),
        ],
    )
    def test_breakpoint_for_width(self, width, expected):
        assert breakpoint_for_width(width) == expected


class TestResolveColumns:
    def test_none_defaults_to_two(self):
        assert resolve_columns(None) == 2

    @pytest.mark.parametrize("value,expected", [(3, 3), (3.7, 3), (0, 1), (-2, 1)])
    def test_fixed_count(self, value, expected):
        assert resolve_columns(value, "xl") == expected

    def test_exact_breakpoint_match(self):
        assert resolve_columns({"base": 1, "md": 3}, "md") == 3

    def test_falls_back_to_smaller_breakpoint(self):
        assert resolve_columns({"base": 1, "md": 3}, "xl") == 3
        assert resolve_columns({"sm": 2, "lg": 4}, "md") == 2

    def test_no_smaller_breakpoint_defaults_to_two(self):
        assert resolve_columns({"lg": 4}, "sm") == 2

    def test_unknown_breakpoint_treated_as_base(self):
        assert resolve_columns({"base": 1, "md": 3}, "huge") == 1


# =============================================================================
# Height Estimation
# =============================================================================


class TestHeightEstimation:
    def test_aspect_ratio_from_id_seed(self):
        # "ab" -> 97 + 98 = 195, 195 % 8 == 3
        assert aspect_ratio_for("ab") == 1.0
        # "a" -> 97, 97 % 8 == 1
        assert aspect_ratio_for("a") == 0.8
        assert aspect_ratio_for("") == 0.7

    def test_image_card_height(self):
        assert estimate_post_card_height({"id": "ab", "images": ["x"]}, WIDE) == 253
        assert estimate_post_card_height({"id": "a", "images": ["x"]}, WIDE) == pytest.approx(294.25)

    def test_text_only_card_height(self):
        assert estimate_post_card_height({"id": "ab", "images": []}, WIDE) == 208

    def test_clamped_to_bounds(self):
        bounds = HeightBounds(min_height=80, max_height=220)
        assert estimate_post_card_height({"id": "ab", "images": ["x"]}, bounds) == 220

    def test_same_item_same_height(self):
        post = build_seed().posts[0]
        assert estimate_post_card_height(post) == estimate_post_card_height(post)

    @pytest.mark.parametrize(
        "min_height,max_height,expected",
        [
            (10, 1000, (40, 600)),
            (300, 305, (300, 310)),
            (595, 600, (590, 600)),
            (80, 220, (80, 220)),
        ],
    )
    def test_bounds_are_clamped(self, min_height, max_height, expected):
        bounds = HeightBounds(min_height=min_height, max_height=max_height)
        assert (bounds.min_height, bounds.max_height) == expected


# =============================================================================
# Greedy Placement
# =============================================================================


def _fixed(heights):
    return lambda index: heights[index]


class TestLayoutMasonry:
    def test_shortest_column_first(self):
        heights = [100, 50, 30, 40]
        layout = layout_masonry(range(4), 2, gap=10, estimate_height=_fixed(heights))
        assert layout.columns == [[0], [1, 2, 3]]
        assert layout.column_heights == [100, 140]
        assert [p.top for p in layout.placements] == [0, 0, 60, 100]

    def test_ties_go_to_lowest_column(self):
        layout = layout_masonry(range(4), 2, estimate_height=lambda _: 10)
        assert layout.columns == [[0, 2], [1, 3]]

    def test_first_item_in_column_has_no_gap(self):
        layout = layout_masonry(range(3), 3, gap=25, estimate_height=lambda _: 10)
        assert [p.top for p in layout.placements] == [0, 0, 0]
        assert layout.column_heights == [10, 10, 10]

    def test_negative_height_counts_as_zero(self):
        layout = layout_masonry(range(2), 1, estimate_height=lambda _: -50)
        assert layout.column_heights == [0]

    def test_column_count_at_least_one(self):
        layout = layout_masonry(range(3), 0, estimate_height=lambda _: 10)
        assert layout.columns == [[0, 1, 2]]

    def test_empty_input(self):
        layout = layout_masonry([], 3)
        assert layout.columns == [[], [], []]
        assert layout.total_height == 0

    def test_group_maps_back_to_items(self):
        items = ["a", "b", "c"]
        layout = layout_masonry(items, 2, estimate_height=lambda _: 10)
        assert layout.group(items) == [["a", "c"], ["b"]]

    def test_deterministic_for_same_posts(self):
        posts = build_seed().posts
        first = layout_masonry(posts, 3, gap=8)
        second = layout_masonry(list(posts), 3, gap=8)
        assert first == second
        assert sorted(i for column in first.columns for i in column) == list(range(len(posts)))

    def test_layout_for_width(self):
        layout = layout_for_width(
            range(6), 1100, {"base": 2, "lg": 3}, estimate_height=lambda _: 10
        )
        assert len(layout.columns) == 3
