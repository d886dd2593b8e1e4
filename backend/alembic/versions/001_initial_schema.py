"""Initial schema: inquiries, quotes, bookings, payment transactions, audit events.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Inquiries table
    op.create_table(
        "inquiries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("route_type", sa.String(20), nullable=False, server_default=sa.text("'One Way'")),
        sa.Column("origin", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("departure_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("passengers", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("purpose", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("luggage", sa.String(255), nullable=True),
        sa.Column("aircraft_preference", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'New'")),
        *_timestamps(),
        sa.CheckConstraint("passengers >= 1", name="check_inquiry_passengers_positive"),
        sa.CheckConstraint(
            "status IN ('New', 'In Progress', 'Quoted', 'Booked', 'Closed')",
            name="check_inquiry_status",
        ),
        sa.CheckConstraint(
            "route_type IN ('One Way', 'Round Trip', 'Multi City')",
            name="check_inquiry_route_type",
        ),
    )
    op.create_index("ix_inquiries_customer_id", "inquiries", ["customer_id"])
    # Customer dashboard: "my inquiries, newest first"
    op.create_index("ix_inquiries_customer_created", "inquiries", ["customer_id", "created_at"])

    # Quotes table
    op.create_table(
        "quotes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("inquiry_id", sa.String(36), sa.ForeignKey("inquiries.id"), nullable=False),
        sa.Column("operator_id", sa.String(64), nullable=False),
        sa.Column("operator_name", sa.String(255), nullable=False),
        sa.Column("aircraft_model", sa.String(255), nullable=False),
        sa.Column("base_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("fee_amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Pending'")),
        *_timestamps(),
        sa.UniqueConstraint("inquiry_id", "operator_id", name="uq_quote_inquiry_operator"),
        sa.CheckConstraint("total_price >= 0", name="check_quote_total_non_negative"),
        sa.CheckConstraint(
            "status IN ('Pending', 'Accepted', 'Rejected', 'Expired', 'Booked')",
            name="check_quote_status",
        ),
    )
    # Acceptance rejects siblings by inquiry_id; without this it scans every quote.
    op.create_index("ix_quotes_inquiry_id", "quotes", ["inquiry_id"])
    op.create_index("ix_quotes_operator_id", "quotes", ["operator_id"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_reference", sa.String(20), nullable=False),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False),
        sa.Column("inquiry_id", sa.String(36), sa.ForeignKey("inquiries.id"), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("operator_id", sa.String(64), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Confirmed'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'Unpaid'")),
        sa.Column("origin", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("departure_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("passengers", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("aircraft_model", sa.String(255), nullable=False),
        sa.Column("operator_name", sa.String(255), nullable=False),
        *_timestamps(),
        # One booking per accepted quote
        sa.UniqueConstraint("quote_id", name="uq_booking_quote"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint(
            "status IN ('Confirmed', 'Scheduled', 'In-Flight', 'Completed', 'Cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('Unpaid', 'Partial', 'Paid')",
            name="check_booking_payment_status",
        ),
    )
    op.create_index("ix_bookings_booking_reference", "bookings", ["booking_reference"], unique=True)
    op.create_index("ix_bookings_inquiry_id", "bookings", ["inquiry_id"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_operator_id", "bookings", ["operator_id"])

    # Payment transactions table
    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'processing'")),
        sa.Column("idempotency_key", sa.String(64), nullable=False),
        sa.Column("gateway_session_id", sa.String(255), nullable=True),
        sa.Column("checkout_url", sa.String(2048), nullable=True),
        sa.Column("settled_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("needs_reconciliation", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("failure_reason", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        sa.CheckConstraint(
            "status IN ('not_started', 'processing', 'succeeded', 'failed', 'refunded')",
            name="check_payment_status",
        ),
    )
    op.create_index("ix_payment_transactions_booking_id", "payment_transactions", ["booking_id"])
    op.create_index("ix_payment_transactions_quote_id", "payment_transactions", ["quote_id"])
    op.create_index("ix_payment_transactions_user_id", "payment_transactions", ["user_id"])
    op.create_index("ix_payment_transactions_idempotency_key", "payment_transactions", ["idempotency_key"])
    # PARTIAL UNIQUE INDEX: at most one in-flight attempt per idempotency key.
    # Failed and succeeded rows keep the key, so a retry after failure can
    # open a new attempt while a concurrent double-submit cannot.
    op.create_index(
        "uq_payment_processing_key",
        "payment_transactions",
        ["idempotency_key"],
        unique=True,
        postgresql_where=sa.text("status = 'processing'"),
    )

    # Audit events table
    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("actor_role", sa.String(20), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False, server_default=sa.text("'SUCCESS'")),
        sa.Column("details", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
    op.create_index("ix_audit_events_entity", "audit_events", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("payment_transactions")
    op.drop_table("bookings")
    op.drop_table("quotes")
    op.drop_table("inquiries")
