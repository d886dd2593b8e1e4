"""
Customer inquiry endpoints.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from charter.api.deps import get_gateway, serve_listing
from charter.core.security import CurrentUser, get_current_user
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.schemas.common import PaginationMeta
from charter.schemas.inquiry import InquiryCreate, InquiryListResponse, InquiryResponse
from charter.services.cache_service import invalidate_customer_cache
from charter.services.inquiry_service import close_inquiry, list_inquiries, submit_inquiry

router = APIRouter(prefix="/inquiries", tags=["Inquiries"])


@router.post("/", response_model=InquiryResponse, status_code=status.HTTP_201_CREATED)
async def create_inquiry(
    inquiry_data: InquiryCreate,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Submit a new charter inquiry. Every rule violation is reported at once."""
    inquiry = await submit_inquiry(gateway, actor, inquiry_data)
    await invalidate_customer_cache(inquiry.customer_id)
    return inquiry


@router.get("/", response_model=InquiryListResponse)
async def list_inquiries_endpoint(
    page: int = Query(1),
    page_size: int = Query(10, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    departure_from: Optional[datetime] = Query(None),
    departure_to: Optional[datetime] = Query(None),
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Customers see their own inquiries; operators and admins see all of them."""

    async def load() -> dict:
        result = await list_inquiries(
            gateway, actor, page, page_size, status_filter, search, departure_from, departure_to,
        )
        return InquiryListResponse(
            items=[InquiryResponse.model_validate(i) for i in result.items],
            pagination=PaginationMeta.from_slice(result),
        ).model_dump(mode="json")

    params = {
        "page": page, "page_size": page_size, "status": status_filter, "search": search,
        "departure_from": departure_from, "departure_to": departure_to,
    }
    return await serve_listing(actor, "inquiries", params, load)


@router.post("/{inquiry_id}/close", response_model=InquiryResponse)
async def close_inquiry_endpoint(
    inquiry_id: str,
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Withdraw an open inquiry; its pending quotes are rejected."""
    inquiry = await close_inquiry(gateway, actor, inquiry_id)
    await invalidate_customer_cache(inquiry.customer_id)
    return inquiry
