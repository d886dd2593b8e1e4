"""
Tests for pagination and listing filters.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from charter.core.exceptions import ValidationError
from charter.domain.query import (
    apply_filters,
    by_field,
    by_status,
    in_date_range,
    matches_search,
    paginate,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class Row:
    id: str
    status: str
    origin: str
    payment_status: str = "Unpaid"
    departure_at: Optional[datetime] = None


ROWS = [
    Row("r1", "Pending", "Teterboro", departure_at=NOW),
    Row("r2", "Accepted", "Van Nuys", "Paid", NOW + timedelta(days=2)),
    Row("r3", "Rejected", "London Luton", departure_at=NOW + timedelta(days=5)),
    Row("r4", "Pending", "Nice Cote d'Azur", departure_at=None),
]


def test_paginate_partitions_items():
    items = list(range(23))
    pages = [paginate(items, p, 10) for p in (1, 2, 3)]

    assert [len(p.items) for p in pages] == [10, 10, 3]
    assert sum((p.items for p in pages), []) == items
    assert all(p.total_records == 23 and p.total_pages == 3 for p in pages)


def test_paginate_navigation_flags():
    first, middle, last = (paginate(list(range(23)), p, 10) for p in (1, 2, 3))

    assert (first.has_prev, first.has_next) == (False, True)
    assert (middle.has_prev, middle.has_next) == (True, True)
    assert (last.has_prev, last.has_next) == (True, False)


def test_paginate_out_of_range_is_empty():
    beyond = paginate(list(range(5)), 4, 10)
    assert beyond.items == []
    assert beyond.has_next is False
    assert beyond.has_prev is False

    zero = paginate(list(range(5)), 0, 10)
    assert zero.items == []
    assert zero.has_next is False


def test_paginate_empty_collection():
    page = paginate([], 1, 10)
    assert page.items == []
    assert page.total_pages == 0
    assert page.has_next is False
    assert page.has_prev is False


def test_paginate_rejects_non_positive_page_size():
    with pytest.raises(ValidationError):
        paginate([1, 2], 1, 0)


def test_status_filter():
    assert [r.id for r in apply_filters(ROWS, by_status("Pending"))] == ["r1", "r4"]
    assert len(apply_filters(ROWS, by_status(None))) == 4


def test_field_filter():
    assert [r.id for r in apply_filters(ROWS, by_field("payment_status", "Paid"))] == ["r2"]


def test_search_is_case_insensitive_substring():
    found = apply_filters(ROWS, matches_search("luTON", ("origin",)))
    assert [r.id for r in found] == ["r3"]
    assert len(apply_filters(ROWS, matches_search("  ", ("origin",)))) == 4


def test_date_range_is_inclusive_and_skips_missing_dates():
    found = apply_filters(ROWS, in_date_range("departure_at", NOW, NOW + timedelta(days=2)))
    assert [r.id for r in found] == ["r1", "r2"]

    open_ended = apply_filters(ROWS, in_date_range("departure_at", NOW + timedelta(days=1)))
    assert [r.id for r in open_ended] == ["r2", "r3"]


def test_filters_compose():
    found = apply_filters(
        ROWS,
        by_status("Pending"),
        matches_search("tet", ("origin",)),
    )
    assert [r.id for r in found] == ["r1"]
