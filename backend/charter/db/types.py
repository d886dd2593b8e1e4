"""
Column types shared by every model.

Money is stored as NUMERIC(14, 2) and always handled as Decimal.
Timestamps are stored timezone-aware and always come back in UTC, including
on backends (SQLite) that drop the offset.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import DateTime, Numeric
from sqlalchemy.types import TypeDecorator

MONEY_QUANTUM = Decimal("0.01")


def Money() -> Numeric:
    return Numeric(14, 2, asdecimal=True)


def round_money(value) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)
