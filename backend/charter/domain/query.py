"""
Read-side helpers: pagination and composable filter predicates.

All functions are pure. Listings load the caller's rows, run them through
``apply_filters`` and then ``paginate``.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from charter.core.exceptions import ValidationError
from charter.db.types import as_utc

Predicate = Callable[[Any], bool]


@dataclass
class PageSlice:
    items: list = field(default_factory=list)
    current_page: int = 1
    page_size: int = 10
    total_records: int = 0
    total_pages: int = 0
    has_next: bool = False
    has_prev: bool = False


def paginate(items: Sequence, page: int, page_size: int) -> PageSlice:
    """
    1-indexed pagination. Pages outside 1..total_pages return an empty
    slice instead of failing.
    """
    if page_size < 1:
        raise ValidationError(["page_size must be at least 1"])

    total = len(items)
    total_pages = math.ceil(total / page_size)
    in_range = 1 <= page <= total_pages
    start = (page - 1) * page_size
    return PageSlice(
        items=list(items[start:start + page_size]) if in_range else [],
        current_page=page,
        page_size=page_size,
        total_records=total,
        total_pages=total_pages,
        has_next=1 <= page < total_pages,
        has_prev=1 < page <= total_pages,
    )


def by_status(*statuses) -> Predicate:
    wanted = {getattr(s, "value", s) for s in statuses if s}

    def predicate(item) -> bool:
        return not wanted or getattr(item, "status", None) in wanted

    return predicate


def by_field(name: str, *values) -> Predicate:
    wanted = {getattr(v, "value", v) for v in values if v}

    def predicate(item) -> bool:
        return not wanted or getattr(item, name, None) in wanted

    return predicate


def in_date_range(
    name: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Predicate:
    """Inclusive range on a datetime attribute. Open ends are unbounded."""
    start = as_utc(start) if start else None
    end = as_utc(end) if end else None

    def predicate(item) -> bool:
        value = getattr(item, name, None)
        if value is None:
            return start is None and end is None
        value = as_utc(value)
        if start is not None and value < start:
            return False
        if end is not None and value > end:
            return False
        return True

    return predicate


def matches_search(term: Optional[str], fields: Iterable[str]) -> Predicate:
    """Case-insensitive substring match across the given attributes."""
    needle = (term or "").strip().casefold()
    fields = tuple(fields)

    def predicate(item) -> bool:
        if not needle:
            return True
        for name in fields:
            value = getattr(item, name, None)
            if value is not None and needle in str(value).casefold():
                return True
        return False

    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    def predicate(item) -> bool:
        return all(p(item) for p in predicates)

    return predicate


def apply_filters(items: Iterable, *predicates: Predicate) -> list:
    combined = all_of(*predicates)
    return [item for item in items if combined(item)]


# User-facing identifier fields searched per entity.
INQUIRY_SEARCH_FIELDS = ("id", "origin", "destination", "purpose")
QUOTE_SEARCH_FIELDS = ("id", "aircraft_model", "operator_name")
BOOKING_SEARCH_FIELDS = (
    "booking_reference",
    "origin",
    "destination",
    "aircraft_model",
    "operator_name",
)
PAYMENT_SEARCH_FIELDS = ("id", "booking_id", "currency")
