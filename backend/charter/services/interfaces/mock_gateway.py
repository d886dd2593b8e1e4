"""
Mock checkout gateway for local development and tests.

Checkout pages live under MOCK_GATEWAY_URL; the page posts its result back to
the webhook as JSON signed with HMAC-SHA256 over the raw body.
"""

import hashlib
import hmac
import json
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional
from urllib.parse import urlencode

from charter.core.exceptions import WebhookVerificationError
from charter.services.interfaces.payment_gateway import (
    CheckoutRequest,
    CheckoutSession,
    GatewayEvent,
    PaymentGateway,
)

SIGNATURE_HEADER = "x-gateway-signature"


def sign_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class MockCheckoutGateway(PaymentGateway):

    name = "mock"

    def __init__(self, base_url: str, webhook_secret: str):
        self.base_url = base_url.rstrip("/")
        self.webhook_secret = webhook_secret

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        session_id = f"mock_{request.idempotency_key[:16]}_{request.transaction_id[:8]}"
        query = urlencode({
            "session_id": session_id,
            "amount": str(request.amount),
            "currency": request.currency,
            "reference": request.booking_reference,
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
        })
        return CheckoutSession(
            redirect_url=f"{self.base_url}/checkout/{request.transaction_id}?{query}",
            session_id=session_id,
        )

    def parse_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Optional[GatewayEvent]:
        signature = _header(headers, SIGNATURE_HEADER)
        expected = sign_payload(payload, self.webhook_secret)
        if not signature or not hmac.compare_digest(signature, expected):
            raise WebhookVerificationError("Bad mock gateway signature")

        try:
            body = json.loads(payload)
            transaction_id = body["transaction_id"]
            outcome = body["outcome"]
            amount = body.get("amount")
            amount = Decimal(str(amount)) if amount is not None else None
        except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
            raise WebhookVerificationError("Malformed mock gateway payload") from exc

        if outcome not in ("succeeded", "failed"):
            return None
        return GatewayEvent(transaction_id=str(transaction_id), outcome=outcome, amount=amount)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None
