"""
Shared route dependencies and the cached-listing helper.
"""

from typing import Awaitable, Callable, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from charter.core.security import CurrentUser
from charter.db.session import get_db
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.services.cache_service import get_cached_listing, set_cached_listing
from charter.services.interfaces.payment_gateway import PaymentGateway
from charter.services.strategy_factory import get_payment_gateway


async def get_gateway(db: AsyncSession = Depends(get_db)) -> SqlAlchemyGateway:
    return SqlAlchemyGateway(db)


def get_payments() -> PaymentGateway:
    return get_payment_gateway()


async def serve_listing(
    actor: Optional[CurrentUser],
    kind: str,
    params: dict,
    load: Callable[[], Awaitable[dict]],
) -> dict:
    """
    Serve a customer's listing from Redis when possible.
    Staff listings span many customers and are always read fresh.
    """
    cacheable = actor is not None and not actor.is_staff
    if cacheable:
        cached = await get_cached_listing(actor.id, kind, params)
        if cached:
            cached["cached"] = True
            return cached

    data = await load()
    if cacheable:
        await set_cached_listing(actor.id, kind, params, data)
    return data
