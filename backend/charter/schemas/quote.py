"""
Pydantic schemas for quote request/response validation.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from charter.schemas.common import PaginationMeta


class QuoteCreate(BaseModel):
    aircraft_model: str = Field(..., max_length=255)
    operator_name: Optional[str] = Field(None, max_length=255)
    base_price: Decimal
    tax_amount: Decimal = Decimal("0")
    currency: Optional[str] = None
    valid_until: Optional[datetime] = None


class QuoteResponse(BaseModel):
    id: str
    inquiry_id: str
    operator_id: str
    operator_name: str
    aircraft_model: str
    base_price: Decimal
    tax_amount: Decimal
    fee_amount: Decimal
    total_price: Decimal
    currency: str
    valid_until: datetime
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def is_expired(self) -> bool:
        """Pending offers past valid_until that nobody has tried to accept yet."""
        valid_until = self.valid_until
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)
        return self.status == "Pending" and valid_until < datetime.now(timezone.utc)


class QuoteListResponse(BaseModel):
    items: list[QuoteResponse]
    pagination: PaginationMeta
    cached: bool = False
