"""
Payment transaction model: one attempt to settle a Booking.

The idempotency key is derived from (user, quote), so it repeats across
retries after a failure. The partial unique index only forbids two
*processing* attempts under the same key, which is what makes concurrent
initiations converge on one row.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, String, text

from charter.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from charter.db.types import Money


class PaymentTransaction(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "payment_transactions"

    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    amount = Column(Money(), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default="processing")
    idempotency_key = Column(String(64), nullable=False, index=True)
    gateway_session_id = Column(String(255), nullable=True)
    checkout_url = Column(String(2048), nullable=True)
    settled_amount = Column(Money(), nullable=True)
    needs_reconciliation = Column(Boolean, nullable=False, default=False)
    failure_reason = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        CheckConstraint(
            "status IN ('not_started', 'processing', 'succeeded', 'failed', 'refunded')",
            name="check_payment_status",
        ),
        Index(
            "uq_payment_processing_key",
            "idempotency_key",
            unique=True,
            postgresql_where=text("status = 'processing'"),
            sqlite_where=text("status = 'processing'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<PaymentTransaction(id={self.id}, booking={self.booking_id}, status={self.status})>"
