"""
Quote model: an operator's commercial offer against an Inquiry.

total_price is base_price + tax_amount + fee_amount, fixed when the quote is
issued. valid_until is checked lazily when the customer accepts; no sweep
rewrites stale Pending rows to Expired.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, String, UniqueConstraint

from charter.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from charter.db.types import Money, UTCDateTime


class Quote(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "quotes"

    inquiry_id = Column(String(36), ForeignKey("inquiries.id"), nullable=False, index=True)
    operator_id = Column(String(64), nullable=False, index=True)
    operator_name = Column(String(255), nullable=False)
    aircraft_model = Column(String(255), nullable=False)
    base_price = Column(Money(), nullable=False)
    tax_amount = Column(Money(), nullable=False, default=0)
    fee_amount = Column(Money(), nullable=False, default=0)
    total_price = Column(Money(), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    valid_until = Column(UTCDateTime(), nullable=False)
    status = Column(String(20), nullable=False, default="Pending")

    __table_args__ = (
        # One offer per operator per trip
        UniqueConstraint("inquiry_id", "operator_id", name="uq_quote_inquiry_operator"),
        CheckConstraint("total_price >= 0", name="check_quote_total_non_negative"),
        CheckConstraint(
            "status IN ('Pending', 'Accepted', 'Rejected', 'Expired', 'Booked')",
            name="check_quote_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, inquiry={self.inquiry_id}, total={self.total_price}, status={self.status})>"
