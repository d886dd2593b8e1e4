"""
Payment history and the gateway callback.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from charter.api.deps import get_gateway, get_payments
from charter.core.logging import get_logger
from charter.core.security import PAYMENT_GATEWAY_IDENTITY, CurrentUser, get_current_user
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.schemas.common import PaginationMeta
from charter.schemas.payment import PaymentListResponse, PaymentResponse, WebhookAck
from charter.services.cache_service import invalidate_customer_cache
from charter.services.interfaces.payment_gateway import PaymentGateway
from charter.services.payment_service import confirm_payment, list_payments

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/", response_model=PaymentListResponse)
async def list_payments_endpoint(
    page: int = Query(1),
    page_size: int = Query(10, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    result = await list_payments(gateway, actor, page, page_size, status_filter, search)
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(tx) for tx in result.items],
        pagination=PaginationMeta.from_slice(result),
    )


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    payments: PaymentGateway = Depends(get_payments),
):
    """
    Settlement callback from the payment gateway.

    The signature is verified against the raw body before anything is read.
    Event types without a settlement outcome are acknowledged and ignored.
    """
    payload = await request.body()
    event = payments.parse_webhook(payload, request.headers)
    if event is None:
        logger.info("payment_webhook_ignored", gateway=payments.name)
        return WebhookAck()

    tx = await confirm_payment(
        gateway, PAYMENT_GATEWAY_IDENTITY, event.transaction_id, event.outcome, event.amount,
    )
    await invalidate_customer_cache(tx.user_id)
    return WebhookAck(transaction_id=tx.id, status=tx.status)
