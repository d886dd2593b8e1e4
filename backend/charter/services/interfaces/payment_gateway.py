"""
Payment gateway interface.

A gateway turns a pending payment transaction into a hosted checkout page and
later tells us, through a signed callback, whether it settled.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional


@dataclass(frozen=True)
class CheckoutRequest:
    transaction_id: str
    booking_reference: str
    amount: Decimal
    currency: str
    success_url: str
    cancel_url: str
    idempotency_key: str


@dataclass(frozen=True)
class CheckoutSession:
    redirect_url: str
    session_id: str


@dataclass(frozen=True)
class GatewayEvent:
    """A settlement outcome reported by the gateway."""

    transaction_id: str
    outcome: str  # succeeded | failed
    amount: Optional[Decimal] = None


class PaymentGateway(ABC):
    """
    Implementations:
    - MockCheckoutGateway: local hosted page + HMAC-signed callbacks
    - StripeCheckoutGateway: Stripe Checkout Sessions + Stripe webhooks
    """

    name: str = "abstract"

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        """
        Create a redirect-based checkout bound to ``request.transaction_id``.

        Raises PaymentGatewayError when no session could be created.
        """

    @abstractmethod
    def parse_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Optional[GatewayEvent]:
        """
        Verify and decode a callback.

        Returns None for event types that carry no settlement outcome.
        Raises WebhookVerificationError on a bad signature or body.
        """
