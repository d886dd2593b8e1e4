"""
Booking model: the commitment created when a customer accepts a Quote.

Key design decisions:
- total_amount is copied from the quote at acceptance and never recomputed
- quote_id is unique: one booking per accepted quote
- payment_status only changes through confirmed payment transactions
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String

from charter.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from charter.db.types import Money, UTCDateTime


class Booking(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "bookings"

    booking_reference = Column(String(20), nullable=False, unique=True, index=True)
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, unique=True)
    inquiry_id = Column(String(36), ForeignKey("inquiries.id"), nullable=False, index=True)
    customer_id = Column(String(64), nullable=False, index=True)
    operator_id = Column(String(64), nullable=False, index=True)
    total_amount = Column(Money(), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default="Confirmed")
    payment_status = Column(String(20), nullable=False, default="Unpaid")

    # Flight details captured at acceptance
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_at = Column(UTCDateTime(), nullable=False)
    return_at = Column(UTCDateTime(), nullable=True)
    passengers = Column(Integer, nullable=False, default=1)
    aircraft_model = Column(String(255), nullable=False)
    operator_name = Column(String(255), nullable=False)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "status IN ('Confirmed', 'Scheduled', 'In-Flight', 'Completed', 'Cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('Unpaid', 'Partial', 'Paid')",
            name="check_booking_payment_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(ref={self.booking_reference}, total={self.total_amount}, payment={self.payment_status})>"
