"""
Quote acceptance: the Quote -> Booking transition.

CONCURRENCY STRATEGY: Compare-and-swap inside one atomic group
==============================================================

Problem:
  A customer holding two offers for the same trip double-clicks, or accepts
  offer A in one tab and offer B in another. Both requests read their quote
  as Pending. Without care both succeed and the customer holds two "won"
  offers and two bookings for one trip.

Solution:
  The precondition checks (exists, owned, Pending, not expired) run first
  and are never retried. The writes then run as one atomic group that
  re-reads the quote and the inquiry and then:

  1. UPDATE inquiries SET status='Booked'
     WHERE id = :inquiry AND status IN ('New', 'In Progress', 'Quoted')
  2. UPDATE quotes SET status='Accepted' WHERE id = :quote AND status='Pending'
  3. UPDATE quotes SET status='Rejected'
     WHERE inquiry_id = :inquiry AND id != :quote AND status='Pending'
  4. INSERT the booking with total_amount frozen from the quote

  Step 1 is the per-inquiry serialization point: the second of two racing
  acceptances blocks on the inquiry row, then matches zero rows and fails
  with InvalidStateError. Taking the inquiry row before any quote row keeps
  the lock order fixed, so racing acceptances cannot deadlock.

  If a transient storage error aborts the group, the whole group is retried.
  That is safe: a group that did commit leaves the quote Accepted, and the
  retry's re-read rejects it.

Once booked, operators move the booking through its flight statuses with
update_flight_status.
"""

import secrets
import time
from datetime import datetime, timezone
from typing import Optional

from charter.core.config import get_settings
from charter.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from charter.core.logging import get_logger
from charter.core.metrics import (
    acceptance_latency,
    persistence_retries,
    record_acceptance,
    record_transition,
)
from charter.core.security import ROLE_ADMIN, ROLE_OPERATOR, CurrentUser, require_identity, require_role
from charter.domain.query import (
    BOOKING_SEARCH_FIELDS,
    PageSlice,
    apply_filters,
    by_field,
    by_status,
    in_date_range,
    matches_search,
    paginate,
)
from charter.domain.statuses import (
    OPEN_INQUIRY_STATUSES,
    BookingStatus,
    InquiryStatus,
    PaymentStatus,
    QuoteStatus,
    assert_transition,
)
from charter.models.booking import Booking
from charter.models.inquiry import Inquiry
from charter.models.quote import Quote
from charter.services.audit_service import record_audit
from charter.services.interfaces.persistence import PersistenceGateway
from charter.services.quote_service import get_owned_quote, is_expired

logger = get_logger(__name__)


def generate_booking_reference() -> str:
    return f"BKG-{secrets.token_hex(4).upper()}"


def check_acceptable(quote: Quote, now: datetime) -> None:
    if quote.status != QuoteStatus.PENDING:
        raise InvalidStateError("quote not pending")
    if is_expired(quote, now):
        raise InvalidStateError("quote expired")


async def accept_quote(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    quote_id: str,
) -> Booking:
    """
    Accept a Pending quote on the caller's inquiry and open a booking for it.
    Retries the atomic group up to ACCEPT_RETRY_ATTEMPTS times on transient
    persistence failures.
    """
    actor = require_identity(actor)
    settings = get_settings()
    started = time.perf_counter()
    now = datetime.now(timezone.utc)

    quote, inquiry = await get_owned_quote(gateway, actor, quote_id)
    try:
        check_acceptable(quote, now)
    except InvalidStateError as exc:
        if exc.reason == "quote expired":
            await _mark_expired(gateway, quote_id)
        record_acceptance("rejected")
        logger.warning("quote_acceptance_refused", quote_id=quote_id, reason=exc.reason)
        raise

    inquiry_id = inquiry.id
    previous_inquiry_status = inquiry.status

    for attempt in range(1, settings.ACCEPT_RETRY_ATTEMPTS + 1):
        try:
            booking = await _apply_acceptance(gateway, actor, quote_id, inquiry_id, now)
        except InvalidStateError as exc:
            record_acceptance("rejected")
            logger.warning(
                "quote_acceptance_conflict",
                quote_id=quote_id,
                inquiry_id=inquiry_id,
                reason=exc.reason,
                attempt=attempt,
            )
            raise
        except PersistenceError as exc:
            persistence_retries.labels(operation="accept_quote").inc()
            logger.warning(
                "quote_acceptance_retry",
                quote_id=quote_id,
                attempt=attempt,
                error=str(exc),
            )
            if attempt == settings.ACCEPT_RETRY_ATTEMPTS:
                record_acceptance("error")
                raise
            continue

        record_acceptance("accepted")
        record_transition("quote", QuoteStatus.PENDING.value, QuoteStatus.ACCEPTED.value)
        record_transition("inquiry", previous_inquiry_status, InquiryStatus.BOOKED.value)
        acceptance_latency.observe(time.perf_counter() - started)
        logger.info(
            "quote_accepted",
            quote_id=quote_id,
            inquiry_id=inquiry_id,
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            total_amount=str(booking.total_amount),
            attempt=attempt,
        )
        return booking

    # Unreachable: the loop either returns or raises on its last attempt.
    raise PersistenceError("Quote acceptance did not complete")


async def _apply_acceptance(
    gateway: PersistenceGateway,
    actor: CurrentUser,
    quote_id: str,
    inquiry_id: str,
    now: datetime,
) -> Booking:
    async with gateway.transaction():
        # Re-read inside the group; the pre-checks may be stale by now.
        quote = await gateway.get(Quote, quote_id)
        inquiry = await gateway.get(Inquiry, inquiry_id)
        if quote is None or inquiry is None:
            raise NotFoundError(f"Quote {quote_id} disappeared during acceptance")
        check_acceptable(quote, now)

        booked = await gateway.update(
            Inquiry, inquiry_id,
            {"status": InquiryStatus.BOOKED},
            expected={"status": list(OPEN_INQUIRY_STATUSES)},
        )
        if not booked:
            raise InvalidStateError("inquiry not open")

        accepted = await gateway.update(
            Quote, quote_id,
            {"status": QuoteStatus.ACCEPTED},
            expected={"status": QuoteStatus.PENDING},
        )
        if not accepted:
            raise InvalidStateError("quote not pending")

        rejected = await gateway.update_where(
            Quote,
            [
                Quote.inquiry_id == inquiry_id,
                Quote.id != quote_id,
                Quote.status == QuoteStatus.PENDING.value,
            ],
            {"status": QuoteStatus.REJECTED},
        )

        booking = Booking(
            booking_reference=generate_booking_reference(),
            quote_id=quote_id,
            inquiry_id=inquiry_id,
            customer_id=actor.id,
            operator_id=quote.operator_id,
            total_amount=quote.total_price,
            currency=quote.currency,
            status=BookingStatus.CONFIRMED.value,
            payment_status=PaymentStatus.UNPAID.value,
            origin=inquiry.origin,
            destination=inquiry.destination,
            departure_at=inquiry.departure_at,
            return_at=inquiry.return_at,
            passengers=inquiry.passengers,
            aircraft_model=quote.aircraft_model,
            operator_name=quote.operator_name,
        )
        await gateway.insert(booking)
        await record_audit(
            gateway, actor, "ACCEPT_OFFER", "quote", quote_id,
            booking_id=booking.id,
            siblings_rejected=rejected,
            total_amount=booking.total_amount,
        )
    return booking


async def _mark_expired(gateway: PersistenceGateway, quote_id: str) -> None:
    """Persist the lazily detected expiry so later reads stop showing Pending."""
    async with gateway.transaction():
        expired = await gateway.update(
            Quote, quote_id,
            {"status": QuoteStatus.EXPIRED},
            expected={"status": QuoteStatus.PENDING},
        )
    if expired:
        record_transition("quote", QuoteStatus.PENDING.value, QuoteStatus.EXPIRED.value)
        logger.info("quote_expired", quote_id=quote_id)


def _can_view(actor: CurrentUser, booking: Booking) -> bool:
    if actor.role == ROLE_ADMIN:
        return True
    if actor.role == ROLE_OPERATOR:
        return booking.operator_id == actor.id
    return booking.customer_id == actor.id


async def get_booking(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    booking_id: str,
) -> Booking:
    actor = require_identity(actor)
    booking = await gateway.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    if not _can_view(actor, booking):
        raise AuthorizationError(f"Booking {booking_id} is not visible to {actor.id}")
    return booking


async def get_owned_booking(
    gateway: PersistenceGateway,
    actor: CurrentUser,
    booking_id: str,
) -> Booking:
    """Booking that the caller holds as the customer."""
    booking = await gateway.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    if booking.customer_id != actor.id:
        raise AuthorizationError(f"Booking {booking_id} belongs to another customer")
    return booking


async def list_bookings(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    page: int = 1,
    page_size: int = 10,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    search: Optional[str] = None,
    departure_from: Optional[datetime] = None,
    departure_to: Optional[datetime] = None,
) -> PageSlice:
    actor = require_identity(actor)
    if actor.role == ROLE_ADMIN:
        criteria = []
    elif actor.role == ROLE_OPERATOR:
        criteria = [Booking.operator_id == actor.id]
    else:
        criteria = [Booking.customer_id == actor.id]

    bookings = await gateway.query(Booking, *criteria, order_by=(Booking.created_at.desc(),))
    bookings = apply_filters(
        bookings,
        by_status(status),
        by_field("payment_status", payment_status),
        in_date_range("departure_at", departure_from, departure_to),
        matches_search(search, BOOKING_SEARCH_FIELDS),
    )
    return paginate(bookings, page, page_size)


async def update_flight_status(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    booking_id: str,
    status: str,
) -> Booking:
    """
    Operator moves its booking along the flight lifecycle
    (Scheduled, In-Flight, Completed) or cancels it before departure.
    """
    actor = require_role(actor, ROLE_OPERATOR, ROLE_ADMIN)
    try:
        target = BookingStatus(status)
    except ValueError as exc:
        raise ValidationError([f"unknown flight status: {status}"]) from exc

    booking = await get_booking(gateway, actor, booking_id)
    current = booking.status
    assert_transition("booking", current, target)

    async with gateway.transaction():
        moved = await gateway.update(
            Booking, booking_id,
            {"status": target},
            expected={"status": current},
        )
        if not moved:
            raise InvalidStateError("booking status changed, reload and retry")
        await record_audit(
            gateway, actor, "UPDATE_FLIGHT_STATUS", "booking", booking_id,
            previous_status=current, new_status=target.value,
        )

    record_transition("booking", current, target.value)
    logger.info(
        "flight_status_updated",
        booking_id=booking_id,
        operator_id=actor.id,
        previous_status=current,
        new_status=target.value,
    )
    return await gateway.get(Booking, booking_id)
