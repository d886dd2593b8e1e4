"""
Payment gateway factory.
Configures which checkout provider the payment service talks to.
"""

from typing import Optional

from charter.core.config import get_settings
from charter.infrastructure.stripe_gateway import StripeCheckoutGateway
from charter.services.interfaces.mock_gateway import MockCheckoutGateway
from charter.services.interfaces.payment_gateway import PaymentGateway


def get_payment_gateway_strategy() -> PaymentGateway:
    """
    Build the configured gateway.

    - "mock": local hosted page with HMAC-signed callbacks (development, tests)
    - "stripe": Stripe Checkout Sessions

    Selected via the PAYMENT_GATEWAY env var.
    """
    settings = get_settings()
    if settings.PAYMENT_GATEWAY == "stripe":
        return StripeCheckoutGateway(
            api_key=settings.STRIPE_API_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        )
    return MockCheckoutGateway(
        base_url=settings.MOCK_GATEWAY_URL,
        webhook_secret=settings.MOCK_WEBHOOK_SECRET,
    )


# Singleton instance
_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get payment gateway singleton."""
    global _gateway
    if _gateway is None:
        _gateway = get_payment_gateway_strategy()
    return _gateway
