"""
Quote issuance, manual rejection by the customer, withdrawal by the operator
and the quote listings.

Acceptance lives in booking_service because it creates the booking.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from charter.core.config import get_settings
from charter.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from charter.core.logging import get_logger
from charter.core.metrics import record_transition
from charter.core.security import ROLE_ADMIN, ROLE_OPERATOR, CurrentUser, require_identity, require_role
from charter.db.types import as_utc, round_money
from charter.domain.query import (
    QUOTE_SEARCH_FIELDS,
    PageSlice,
    apply_filters,
    by_status,
    matches_search,
    paginate,
)
from charter.domain.statuses import (
    HISTORY_QUOTE_STATUSES,
    OPEN_INQUIRY_STATUSES,
    InquiryStatus,
    QuoteStatus,
    assert_transition,
)
from charter.models.inquiry import Inquiry
from charter.models.quote import Quote
from charter.schemas.quote import QuoteCreate
from charter.services.audit_service import record_audit
from charter.services.inquiry_service import get_owned_inquiry
from charter.services.interfaces.persistence import PersistenceGateway

logger = get_logger(__name__)


def is_expired(quote: Quote, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return as_utc(quote.valid_until) < now


def price_quote(data: QuoteCreate) -> tuple:
    """Return (base, tax, platform fee, total) for an operator's price."""
    settings = get_settings()
    base = round_money(data.base_price)
    tax = round_money(data.tax_amount)
    fee = round_money(base * settings.PLATFORM_FEE_RATE)
    return base, tax, fee, base + tax + fee


def validate_quote(data: QuoteCreate, now: datetime) -> list[str]:
    errors = []
    if not (data.aircraft_model or "").strip():
        errors.append("aircraft_model is required")
    if data.base_price is None or data.base_price <= 0:
        errors.append("base_price must be positive")
    if data.tax_amount is not None and data.tax_amount < 0:
        errors.append("tax_amount cannot be negative")
    if data.currency is not None and (len(data.currency) != 3 or not data.currency.isalpha()):
        errors.append("currency must be a 3-letter ISO code")
    if data.valid_until is not None and as_utc(data.valid_until) <= now:
        errors.append("valid_until must be in the future")
    return errors


async def issue_quote(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    inquiry_id: str,
    data: QuoteCreate,
) -> Quote:
    """
    Operator prices an open inquiry. Adds the platform fee on top of the
    operator's base price and advances the inquiry to Quoted.
    """
    actor = require_role(actor, ROLE_OPERATOR, ROLE_ADMIN)
    settings = get_settings()
    now = datetime.now(timezone.utc)

    inquiry = await gateway.get(Inquiry, inquiry_id)
    if inquiry is None:
        raise NotFoundError(f"Inquiry {inquiry_id} not found")
    if inquiry.status not in OPEN_INQUIRY_STATUSES:
        raise InvalidStateError("inquiry not open")

    errors = validate_quote(data, now)
    existing = await gateway.query(
        Quote, Quote.inquiry_id == inquiry_id, Quote.operator_id == actor.id,
    )
    if existing:
        errors.append("you have already submitted a quote for this inquiry")
    if errors:
        raise ValidationError(errors)

    base, tax, fee, total = price_quote(data)
    quote = Quote(
        inquiry_id=inquiry_id,
        operator_id=actor.id,
        operator_name=(data.operator_name or actor.id).strip(),
        aircraft_model=data.aircraft_model.strip(),
        base_price=base,
        tax_amount=tax,
        fee_amount=fee,
        total_price=total,
        currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
        valid_until=(
            as_utc(data.valid_until) if data.valid_until
            else now + timedelta(hours=settings.QUOTE_VALIDITY_HOURS)
        ),
        status=QuoteStatus.PENDING.value,
    )

    current = inquiry.status
    async with gateway.transaction():
        await gateway.insert(quote)
        if current != InquiryStatus.QUOTED:
            moved = await gateway.update(
                Inquiry, inquiry_id,
                {"status": InquiryStatus.QUOTED},
                expected={"status": current},
            )
            if not moved:
                raise InvalidStateError("inquiry not open")
        await record_audit(
            gateway, actor, "SUBMIT_QUOTE", "quote", quote.id,
            inquiry_id=inquiry_id, total_price=total,
        )

    if current != InquiryStatus.QUOTED:
        record_transition("inquiry", current, InquiryStatus.QUOTED.value)
    logger.info(
        "quote_issued",
        quote_id=quote.id,
        inquiry_id=inquiry_id,
        operator_id=actor.id,
        total_price=str(total),
        valid_until=quote.valid_until.isoformat(),
    )
    return quote


async def get_owned_quote(
    gateway: PersistenceGateway,
    actor: CurrentUser,
    quote_id: str,
) -> tuple:
    """Load a quote and its inquiry, checking the inquiry belongs to the caller."""
    quote = await gateway.get(Quote, quote_id)
    if quote is None:
        raise NotFoundError(f"Quote {quote_id} not found")
    try:
        inquiry = await get_owned_inquiry(gateway, actor, quote.inquiry_id)
    except NotFoundError as exc:
        raise AuthorizationError(f"Quote {quote_id} has no visible inquiry") from exc
    return quote, inquiry


async def reject_quote(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    quote_id: str,
) -> Quote:
    """Customer declines a Pending offer."""
    actor = require_identity(actor)
    quote, _ = await get_owned_quote(gateway, actor, quote_id)
    assert_transition("quote", quote.status, QuoteStatus.REJECTED, "quote not pending")

    async with gateway.transaction():
        moved = await gateway.update(
            Quote, quote_id,
            {"status": QuoteStatus.REJECTED},
            expected={"status": QuoteStatus.PENDING},
        )
        if not moved:
            raise InvalidStateError("quote not pending")
        await record_audit(gateway, actor, "REJECT_QUOTE", "quote", quote_id)

    record_transition("quote", QuoteStatus.PENDING.value, QuoteStatus.REJECTED.value)
    logger.info("quote_rejected", quote_id=quote_id, customer_id=actor.id)
    return await gateway.get(Quote, quote_id)


async def withdraw_quote(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    quote_id: str,
) -> Quote:
    """Operator pulls its own Pending offer before the customer acts on it."""
    actor = require_role(actor, ROLE_OPERATOR, ROLE_ADMIN)
    quote = await gateway.get(Quote, quote_id)
    if quote is None:
        raise NotFoundError(f"Quote {quote_id} not found")
    if actor.role != ROLE_ADMIN and quote.operator_id != actor.id:
        raise AuthorizationError(f"Quote {quote_id} belongs to another operator")
    assert_transition("quote", quote.status, QuoteStatus.REJECTED, "quote not pending")

    async with gateway.transaction():
        moved = await gateway.update(
            Quote, quote_id,
            {"status": QuoteStatus.REJECTED},
            expected={"status": QuoteStatus.PENDING},
        )
        if not moved:
            raise InvalidStateError("quote not pending")
        await record_audit(gateway, actor, "WITHDRAW_QUOTE", "quote", quote_id)

    record_transition("quote", QuoteStatus.PENDING.value, QuoteStatus.REJECTED.value)
    logger.info("quote_withdrawn", quote_id=quote_id, operator_id=actor.id)
    return await gateway.get(Quote, quote_id)


async def list_quotes(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    page: int = 1,
    page_size: int = 10,
    tab: str = "active",
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> PageSlice:
    """
    Quotes visible to the caller: offers on a customer's inquiries, an
    operator's own submitted quotes, or every quote for admins.

    The active tab holds Pending/Accepted offers, Pending first; the history
    tab holds Expired/Rejected/Booked ones. Both are newest first.
    """
    actor = require_identity(actor)
    if actor.role == ROLE_ADMIN:
        criteria = []
    elif actor.role == ROLE_OPERATOR:
        criteria = [Quote.operator_id == actor.id]
    else:
        inquiries = await gateway.query(Inquiry, Inquiry.customer_id == actor.id)
        inquiry_ids = [inquiry.id for inquiry in inquiries]
        if not inquiry_ids:
            return paginate([], page, page_size)
        criteria = [Quote.inquiry_id.in_(inquiry_ids)]

    quotes = await gateway.query(Quote, *criteria, order_by=(Quote.created_at.desc(),))
    history = {s.value for s in HISTORY_QUOTE_STATUSES}
    if tab == "history":
        quotes = [q for q in quotes if q.status in history]
    else:
        quotes = [q for q in quotes if q.status not in history]
        # stable sort keeps newest-first inside each group
        quotes.sort(key=lambda q: q.status != QuoteStatus.PENDING.value)

    quotes = apply_filters(
        quotes,
        by_status(status if status and status != "All" else None),
        matches_search(search, QUOTE_SEARCH_FIELDS),
    )
    return paginate(quotes, page, page_size)
