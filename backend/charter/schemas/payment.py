"""
Pydantic schemas for payment initiation, status polling and history.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from charter.schemas.common import PaginationMeta


class PaymentInitiationResponse(BaseModel):
    transaction_id: str
    redirect_url: str
    reused: bool = False


class PaymentStatusResponse(BaseModel):
    booking_id: str
    payment_status: str
    transaction_id: Optional[str]
    transaction_status: str
    needs_reconciliation: bool = False


class PaymentResponse(BaseModel):
    id: str
    booking_id: str
    quote_id: str
    amount: Decimal
    currency: str
    status: str
    settled_amount: Optional[Decimal]
    needs_reconciliation: bool
    failure_reason: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    pagination: PaginationMeta


class WebhookAck(BaseModel):
    received: bool = True
    transaction_id: Optional[str] = None
    status: Optional[str] = None
