"""Tests for page/limit normalization and slicing."""

import pytest

from campusfeed.pagination import (
    REPLIES_PAGE_SIZE,
    build_pagination,
    normalize_page_params,
    paginate,
    total_pages_for,
)


class TestNormalizePageParams:
    @pytest.mark.parametrize(
        "page,limit,expected",
        [
            (None, None, (1, 20)),
            ("2", 500, (2, 50)),
            (0, -3, (1, 1)),
            (3.9, 7.2, (3, 7)),
            ("abc", "xyz", (1, 20)),
            (True, False, (1, 20)),
            (float("nan"), float("inf"), (1, 20)),
            (10**400, -(10**400), (1, 20)),
        ],
    )
    def test_clamping(self, page, limit, expected):
        assert normalize_page_params(page, limit) == expected

    def test_custom_default_limit(self):
        assert normalize_page_params(None, None, default_limit=REPLIES_PAGE_SIZE) == (1, 10)

    def test_default_limit_respects_cap(self):
        assert normalize_page_params(None, None, default_limit=80) == (1, 50)


class TestTotalPages:
    @pytest.mark.parametrize(
        "total,limit,expected",
        [(0, 20, 1), (1, 20, 1), (20, 20, 1), (21, 20, 2), (45, 20, 3), (100, 50, 2)],
    )
    def test_total_pages(self, total, limit, expected):
        assert total_pages_for(total, limit) == expected

    def test_build_pagination(self):
        pagination = build_pagination(2, 10, 35)
        assert pagination.model_dump() == {"page": 2, "limit": 10, "total": 35, "total_pages": 4}


class TestPaginate:
    def test_middle_page(self):
        page = paginate(list(range(45)), page=2, limit=20)
        assert page.items == list(range(20, 40))
        assert page.pagination.total == 45
        assert page.has_next

    def test_last_page(self):
        page = paginate(list(range(45)), page=3, limit=20)
        assert page.items == [40, 41, 42, 43, 44]
        assert page.pagination.total_pages == 3
        assert not page.has_next

    def test_page_past_end_is_empty(self):
        page = paginate(list(range(5)), page=4, limit=2)
        assert page.items == []
        assert page.pagination.total == 5
        assert page.pagination.total_pages == 3

    def test_empty_result_has_one_page(self):
        page = paginate([], page=1, limit=20)
        assert page.items == []
        assert page.pagination.total_pages == 1

    def test_round_trip_covers_every_item_once(self):
        items = [f"item-{i}" for i in range(47)]
        first = paginate(items, page=1, limit=10)
        collected = []
        for number in range(1, first.pagination.total_pages + 1):
            collected.extend(paginate(items, page=number, limit=10).items)
        assert collected == items

    def test_default_limit_override(self):
        page = paginate(list(range(30)), default_limit=REPLIES_PAGE_SIZE)
        assert len(page.items) == 10
        assert page.pagination.limit == 10
