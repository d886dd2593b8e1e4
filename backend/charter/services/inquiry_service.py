"""
Inquiry intake and inquiry-level transitions.
"""

from datetime import datetime, timezone
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
from charter.db.types import as_utc
from charter.domain.query import (
    INQUIRY_SEARCH_FIELDS,
    PageSlice,
    apply_filters,
    by_status,
    in_date_range,
    matches_search,
    paginate,
)
from charter.domain.statuses import (
    OPEN_INQUIRY_STATUSES,
    InquiryStatus,
    QuoteStatus,
    RouteType,
    assert_transition,
)
from charter.models.inquiry import Inquiry
from charter.models.quote import Quote
from charter.schemas.inquiry import InquiryCreate
from charter.services.audit_service import record_audit
from charter.services.interfaces.persistence import PersistenceGateway

logger = get_logger(__name__)


def validate_inquiry(data: InquiryCreate, now: Optional[datetime] = None) -> list[str]:
    """
    Check every intake rule and return all violations, not just the first,
    so the form can show every problem at once.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    errors = []

    route_types = {r.value for r in RouteType}
    if data.route_type not in route_types:
        errors.append(f"route_type must be one of: {', '.join(sorted(route_types))}")

    origin = (data.origin or "").strip()
    destination = (data.destination or "").strip()
    if not origin:
        errors.append("origin is required")
    if not destination:
        errors.append("destination is required")
    if origin and destination and origin.casefold() == destination.casefold():
        errors.append("origin and destination must differ")

    departure = as_utc(data.departure_at) if data.departure_at else None
    if departure is None:
        errors.append("departure time is required")
    elif departure <= now:
        errors.append("departure time must be in the future")

    if data.route_type == RouteType.ROUND_TRIP.value:
        if data.return_at is None:
            errors.append("return time is required for a round trip")
        elif departure is not None and as_utc(data.return_at) <= departure:
            errors.append("return time must be after departure")

    if data.passengers is None or not 1 <= data.passengers <= settings.MAX_PASSENGERS:
        errors.append(f"passengers must be between 1 and {settings.MAX_PASSENGERS}")

    return errors


async def submit_inquiry(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    data: InquiryCreate,
) -> Inquiry:
    """Create a New inquiry for the caller. Never retried automatically."""
    actor = require_identity(actor)

    errors = validate_inquiry(data)
    if errors:
        logger.warning("inquiry_rejected", customer_id=actor.id, errors=errors)
        raise ValidationError(errors)

    round_trip = data.route_type == RouteType.ROUND_TRIP.value
    inquiry = Inquiry(
        customer_id=actor.id,
        route_type=data.route_type,
        origin=data.origin.strip(),
        destination=data.destination.strip(),
        departure_at=as_utc(data.departure_at),
        return_at=as_utc(data.return_at) if round_trip else None,
        passengers=data.passengers,
        purpose=data.purpose,
        notes=data.notes,
        luggage=data.luggage,
        aircraft_preference=data.aircraft_preference,
        status=InquiryStatus.NEW.value,
    )

    async with gateway.transaction():
        await gateway.insert(inquiry)
        await record_audit(
            gateway, actor, "CREATE_INQUIRY", "inquiry", inquiry.id,
            route=f"{inquiry.origin}->{inquiry.destination}",
        )

    logger.info(
        "inquiry_created",
        inquiry_id=inquiry.id,
        customer_id=actor.id,
        route_type=inquiry.route_type,
        passengers=inquiry.passengers,
    )
    return inquiry


async def get_owned_inquiry(
    gateway: PersistenceGateway,
    actor: CurrentUser,
    inquiry_id: str,
) -> Inquiry:
    inquiry = await gateway.get(Inquiry, inquiry_id)
    if inquiry is None:
        raise NotFoundError(f"Inquiry {inquiry_id} not found")
    if inquiry.customer_id != actor.id:
        raise AuthorizationError(f"Inquiry {inquiry_id} belongs to another customer")
    return inquiry


async def start_review(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    inquiry_id: str,
) -> Inquiry:
    """Operator picks up a New inquiry."""
    actor = require_role(actor, ROLE_OPERATOR, ROLE_ADMIN)
    inquiry = await gateway.get(Inquiry, inquiry_id)
    if inquiry is None:
        raise NotFoundError(f"Inquiry {inquiry_id} not found")

    current = inquiry.status
    assert_transition("inquiry", current, InquiryStatus.IN_PROGRESS, "inquiry is not new")

    async with gateway.transaction():
        moved = await gateway.update(
            Inquiry, inquiry_id,
            {"status": InquiryStatus.IN_PROGRESS},
            expected={"status": current},
        )
        if not moved:
            raise InvalidStateError("inquiry is not new")
        await record_audit(gateway, actor, "START_REVIEW", "inquiry", inquiry_id)

    record_transition("inquiry", current, InquiryStatus.IN_PROGRESS.value)
    logger.info("inquiry_in_review", inquiry_id=inquiry_id, operator_id=actor.id)
    return await gateway.get(Inquiry, inquiry_id)


async def close_inquiry(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    inquiry_id: str,
) -> Inquiry:
    """
    Customer withdraws an open inquiry. Outstanding Pending quotes are
    rejected in the same atomic group.
    """
    actor = require_identity(actor)
    inquiry = await get_owned_inquiry(gateway, actor, inquiry_id)
    current = inquiry.status
    assert_transition("inquiry", current, InquiryStatus.CLOSED, "inquiry can no longer be closed")

    async with gateway.transaction():
        moved = await gateway.update(
            Inquiry, inquiry_id,
            {"status": InquiryStatus.CLOSED},
            expected={"status": list(OPEN_INQUIRY_STATUSES)},
        )
        if not moved:
            raise InvalidStateError("inquiry can no longer be closed")
        rejected = await gateway.update_where(
            Quote,
            [Quote.inquiry_id == inquiry_id, Quote.status == QuoteStatus.PENDING.value],
            {"status": QuoteStatus.REJECTED},
        )
        await record_audit(
            gateway, actor, "CLOSE_INQUIRY", "inquiry", inquiry_id, quotes_rejected=rejected,
        )

    record_transition("inquiry", current, InquiryStatus.CLOSED.value)
    logger.info("inquiry_closed", inquiry_id=inquiry_id, quotes_rejected=rejected)
    return await gateway.get(Inquiry, inquiry_id)


async def list_inquiries(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    page: int = 1,
    page_size: int = 10,
    status: Optional[str] = None,
    search: Optional[str] = None,
    departure_from: Optional[datetime] = None,
    departure_to: Optional[datetime] = None,
) -> PageSlice:
    """
    Customers see their own inquiries; operators and admins see the whole
    marketplace.
    """
    actor = require_identity(actor)
    criteria = [] if actor.is_staff else [Inquiry.customer_id == actor.id]
    inquiries = await gateway.query(Inquiry, *criteria, order_by=(Inquiry.created_at.desc(),))
    inquiries = apply_filters(
        inquiries,
        by_status(status),
        matches_search(search, INQUIRY_SEARCH_FIELDS),
        in_date_range("departure_at", departure_from, departure_to),
    )
    return paginate(inquiries, page, page_size)
