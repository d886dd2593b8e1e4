"""
Booking endpoints: listings, detail and payment initiation.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from charter.api.deps import get_gateway, get_payments, serve_listing
from charter.core.security import CurrentUser, get_current_user
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.schemas.booking import BookingListResponse, BookingResponse
from charter.schemas.common import PaginationMeta
from charter.schemas.payment import PaymentInitiationResponse, PaymentStatusResponse
from charter.services.booking_service import get_booking, list_bookings
from charter.services.interfaces.payment_gateway import PaymentGateway
from charter.services.payment_service import get_payment_status, initiate_payment

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/", response_model=BookingListResponse)
async def list_bookings_endpoint(
    page: int = Query(1),
    page_size: int = Query(10, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    departure_from: Optional[datetime] = Query(None),
    departure_to: Optional[datetime] = Query(None),
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):

    async def load() -> dict:
        result = await list_bookings(
            gateway, actor, page, page_size, status_filter, payment_status,
            search, departure_from, departure_to,
        )
        return BookingListResponse(
            items=[BookingResponse.model_validate(b) for b in result.items],
            pagination=PaginationMeta.from_slice(result),
        ).model_dump(mode="json")

    params = {
        "page": page, "page_size": page_size, "status": status_filter,
        "payment_status": payment_status, "search": search,
        "departure_from": departure_from, "departure_to": departure_to,
    }
    return await serve_listing(actor, "bookings", params, load)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Single booking. Not cached: the payment page needs the live status."""
    return await get_booking(gateway, actor, booking_id)


@router.post(
    "/{booking_id}/payments",
    response_model=PaymentInitiationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_payment_endpoint(
    booking_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    payments: PaymentGateway = Depends(get_payments),
):
    """
    Start checkout for an unpaid booking and return the hosted page URL.
    Repeating the call while a payment is in flight returns the same URL.
    """
    initiation = await initiate_payment(gateway, payments, actor, booking_id)
    return PaymentInitiationResponse(
        transaction_id=initiation.transaction_id,
        redirect_url=initiation.redirect_url,
        reused=initiation.reused,
    )


@router.get("/{booking_id}/payment-status", response_model=PaymentStatusResponse)
async def payment_status_endpoint(
    booking_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    return await get_payment_status(gateway, actor, booking_id)
