"""
Operator portal endpoints: review inquiries, price them, withdraw offers
and report flight progress on won bookings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from charter.api.deps import get_gateway
from charter.core.security import CurrentUser, get_current_user
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.models.inquiry import Inquiry
from charter.schemas.booking import BookingResponse, FlightStatusUpdate
from charter.schemas.inquiry import InquiryResponse
from charter.schemas.quote import QuoteCreate, QuoteResponse
from charter.services.booking_service import update_flight_status
from charter.services.cache_service import invalidate_customer_cache
from charter.services.inquiry_service import start_review
from charter.services.quote_service import issue_quote, withdraw_quote

router = APIRouter(prefix="/operator", tags=["Operator"])


@router.post("/inquiries/{inquiry_id}/review", response_model=InquiryResponse)
async def start_review_endpoint(
    inquiry_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    inquiry = await start_review(gateway, actor, inquiry_id)
    await invalidate_customer_cache(inquiry.customer_id)
    return inquiry


@router.post(
    "/inquiries/{inquiry_id}/quotes",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_quote_endpoint(
    inquiry_id: str,
    quote_data: QuoteCreate,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Price an open inquiry. The platform fee is added on top of the base price."""
    quote = await issue_quote(gateway, actor, inquiry_id, quote_data)
    inquiry = await gateway.get(Inquiry, inquiry_id)
    await invalidate_customer_cache(inquiry.customer_id)
    return quote


@router.post("/quotes/{quote_id}/withdraw", response_model=QuoteResponse)
async def withdraw_quote_endpoint(
    quote_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    quote = await withdraw_quote(gateway, actor, quote_id)
    inquiry = await gateway.get(Inquiry, quote.inquiry_id)
    await invalidate_customer_cache(inquiry.customer_id)
    return quote


@router.post("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_flight_status_endpoint(
    booking_id: str,
    update: FlightStatusUpdate,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Move a booking to Scheduled, In-Flight or Completed, or cancel it before departure."""
    booking = await update_flight_status(gateway, actor, booking_id, update.status)
    await invalidate_customer_cache(booking.customer_id)
    return booking
