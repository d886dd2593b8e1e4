"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from charter.api.routes import admin, bookings, inquiries, operator, payments, quotes

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(inquiries.router)
api_router.include_router(operator.router)
api_router.include_router(quotes.router)
api_router.include_router(bookings.router)
api_router.include_router(payments.router)
api_router.include_router(admin.router)
