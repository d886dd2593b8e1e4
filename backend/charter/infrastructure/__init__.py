"""
Infrastructure layer - external system integrations.
Keeps the lifecycle services free of driver and SDK details.
"""

from .redis_client import get_redis, close_redis, RedisClient
from .sql_gateway import SqlAlchemyGateway
from .stripe_gateway import StripeCheckoutGateway

__all__ = ['get_redis', 'close_redis', 'RedisClient', 'SqlAlchemyGateway', 'StripeCheckoutGateway']
