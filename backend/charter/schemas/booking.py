"""
Pydantic schemas for booking responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from charter.schemas.common import PaginationMeta


class BookingResponse(BaseModel):
    id: str
    booking_reference: str
    quote_id: str
    inquiry_id: str
    customer_id: str
    operator_id: str
    total_amount: Decimal
    currency: str
    status: str
    payment_status: str
    origin: str
    destination: str
    departure_at: datetime
    return_at: Optional[datetime]
    passengers: int
    aircraft_model: str
    operator_name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FlightStatusUpdate(BaseModel):
    status: str


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    pagination: PaginationMeta
    cached: bool = False
