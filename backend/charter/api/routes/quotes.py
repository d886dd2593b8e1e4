"""
Customer quote endpoints, including acceptance.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from charter.api.deps import get_gateway, serve_listing
from charter.core.logging import get_logger
from charter.core.security import CurrentUser, get_current_user
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.schemas.booking import BookingResponse
from charter.schemas.common import PaginationMeta
from charter.schemas.quote import QuoteListResponse, QuoteResponse
from charter.services.booking_service import accept_quote
from charter.services.cache_service import invalidate_customer_cache
from charter.services.quote_service import list_quotes, reject_quote

logger = get_logger(__name__)
router = APIRouter(prefix="/quotes", tags=["Quotes"])


@router.get("/", response_model=QuoteListResponse)
async def list_quotes_endpoint(
    page: int = Query(1),
    page_size: int = Query(10, le=100),
    tab: str = Query("active", pattern="^(active|history)$"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Offers on the caller's inquiries (or an operator's own quotes), split into active and history tabs."""

    async def load() -> dict:
        result = await list_quotes(gateway, actor, page, page_size, tab, status_filter, search)
        return QuoteListResponse(
            items=[QuoteResponse.model_validate(q) for q in result.items],
            pagination=PaginationMeta.from_slice(result),
        ).model_dump(mode="json")

    params = {
        "page": page, "page_size": page_size, "tab": tab,
        "status": status_filter, "search": search,
    }
    return await serve_listing(actor, "quotes", params, load)


@router.post("/{quote_id}/accept", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def accept_quote_endpoint(
    quote_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """
    Accept a pending offer and open a booking at the quoted price.

    Competing offers on the same inquiry are rejected in the same atomic
    step. A second acceptance of any offer on that inquiry returns 409.
    """
    booking = await accept_quote(gateway, actor, quote_id)
    await invalidate_customer_cache(booking.customer_id)
    return booking


@router.post("/{quote_id}/reject", response_model=QuoteResponse)
async def reject_quote_endpoint(
    quote_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    quote = await reject_quote(gateway, actor, quote_id)
    await invalidate_customer_cache(actor.id)
    return quote
