"""
Stripe Checkout implementation of the payment gateway.

The transaction id travels in client_reference_id and metadata so the webhook
can find it again. Stripe receives the booking key scoped to the transaction:
resuming one transaction returns the same Checkout Session, while a fresh
transaction after a failed attempt gets a fresh key, since Stripe refuses a
key replayed with different parameters.
"""

import json
from decimal import Decimal
from typing import Mapping, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from charter.core.exceptions import PaymentGatewayError, WebhookVerificationError
from charter.core.logging import get_logger
from charter.services.interfaces.payment_gateway import (
    CheckoutRequest,
    CheckoutSession,
    GatewayEvent,
    PaymentGateway,
)

logger = get_logger(__name__)

SUCCESS_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAILURE_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def stripe_idempotency_key(request: CheckoutRequest) -> str:
    return f"{request.idempotency_key}:{request.transaction_id}"


def with_session_placeholder(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}session_id={{CHECKOUT_SESSION_ID}}"


class StripeCheckoutGateway(PaymentGateway):

    name = "stripe"

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": request.currency.lower(),
                    "product_data": {"name": f"Charter booking {request.booking_reference}"},
                    "unit_amount": to_minor_units(request.amount),
                },
                "quantity": 1,
            }],
            "client_reference_id": request.transaction_id,
            "metadata": {
                "transaction_id": request.transaction_id,
                "booking_reference": request.booking_reference,
            },
            "success_url": with_session_placeholder(request.success_url),
            "cancel_url": request.cancel_url,
        }
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                api_key=self.api_key,
                idempotency_key=stripe_idempotency_key(request),
                **params,
            )
        except stripe.StripeError as exc:
            logger.error(
                "stripe_checkout_failed",
                transaction_id=request.transaction_id,
                error=str(exc),
            )
            raise PaymentGatewayError("Stripe refused to create a checkout session") from exc

        if not session.url:
            raise PaymentGatewayError("Stripe returned a session without a redirect URL")
        return CheckoutSession(redirect_url=session.url, session_id=session.id)

    def parse_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Optional[GatewayEvent]:
        signature = next((v for k, v in headers.items() if k.lower() == "stripe-signature"), None)
        if not signature or not self.webhook_secret:
            raise WebhookVerificationError("Missing Stripe signature or webhook secret")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
            event = json.loads(payload)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise WebhookVerificationError("Invalid Stripe webhook") from exc

        event_type = event["type"]
        if event_type not in SUCCESS_EVENTS | FAILURE_EVENTS:
            return None

        session = event["data"]["object"]
        metadata = session.get("metadata") or {}
        transaction_id = metadata.get("transaction_id") or session.get("client_reference_id")
        if not transaction_id:
            raise WebhookVerificationError("Stripe session carries no transaction id")

        if event_type in FAILURE_EVENTS:
            return GatewayEvent(transaction_id=transaction_id, outcome="failed")

        # completed but still awaiting an async method; a later event settles it
        if session.get("payment_status") not in ("paid", "no_payment_required"):
            return None
        amount_total = session.get("amount_total")
        return GatewayEvent(
            transaction_id=transaction_id,
            outcome="succeeded",
            amount=from_minor_units(amount_total) if amount_total is not None else None,
        )
