"""
Inquiry model: a customer's unconfirmed travel request.

Key design decisions:
- Status is a plain string guarded by a CHECK constraint; allowed moves live
  in charter.domain.statuses, not in the database
- Inquiries are never deleted, only closed
- Index on (customer_id, created_at) serves the dashboard listing
"""

from sqlalchemy import CheckConstraint, Column, Index, Integer, String, Text

from charter.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from charter.db.types import UTCDateTime


class Inquiry(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "inquiries"

    customer_id = Column(String(64), nullable=False, index=True)
    route_type = Column(String(20), nullable=False, default="One Way")
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_at = Column(UTCDateTime(), nullable=False)
    return_at = Column(UTCDateTime(), nullable=True)
    passengers = Column(Integer, nullable=False, default=1)
    purpose = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    luggage = Column(String(255), nullable=True)
    aircraft_preference = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="New")

    __table_args__ = (
        CheckConstraint("passengers >= 1", name="check_inquiry_passengers_positive"),
        CheckConstraint(
            "status IN ('New', 'In Progress', 'Quoted', 'Booked', 'Closed')",
            name="check_inquiry_status",
        ),
        CheckConstraint(
            "route_type IN ('One Way', 'Round Trip', 'Multi City')",
            name="check_inquiry_route_type",
        ),
        Index("ix_inquiries_customer_created", "customer_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Inquiry(id={self.id}, {self.origin}->{self.destination}, status={self.status})>"
