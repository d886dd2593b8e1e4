"""
Pydantic schemas for inquiry request/response validation.

Field rules (non-empty route, future departure, passenger bounds) are
checked by the inquiry service so every violation is reported together.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from charter.schemas.common import PaginationMeta


class InquiryCreate(BaseModel):
    route_type: str = "One Way"
    origin: Optional[str] = Field(None, max_length=255)
    destination: Optional[str] = Field(None, max_length=255)
    departure_at: Optional[datetime] = None
    return_at: Optional[datetime] = None
    passengers: Optional[int] = None
    purpose: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    luggage: Optional[str] = Field(None, max_length=255)
    aircraft_preference: Optional[str] = Field(None, max_length=255)


class InquiryResponse(BaseModel):
    id: str
    customer_id: str
    route_type: str
    origin: str
    destination: str
    departure_at: datetime
    return_at: Optional[datetime]
    passengers: int
    purpose: Optional[str]
    notes: Optional[str]
    luggage: Optional[str]
    aircraft_preference: Optional[str]
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class InquiryListResponse(BaseModel):
    items: list[InquiryResponse]
    pagination: PaginationMeta
    cached: bool = False
