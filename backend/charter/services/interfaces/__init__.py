"""
Service interfaces for dependency inversion.
Lets the lifecycle run against any store and any checkout provider.
"""

from .persistence import PersistenceGateway
from .payment_gateway import CheckoutRequest, CheckoutSession, GatewayEvent, PaymentGateway
from .mock_gateway import MockCheckoutGateway

__all__ = [
    'PersistenceGateway',
    'PaymentGateway', 'CheckoutRequest', 'CheckoutSession', 'GatewayEvent',
    'MockCheckoutGateway',
]
