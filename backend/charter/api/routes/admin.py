"""
Admin endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from charter.api.deps import get_gateway
from charter.core.security import CurrentUser, get_current_user
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.schemas.audit import AuditEventListResponse, AuditEventResponse
from charter.schemas.common import PaginationMeta
from charter.services.audit_service import list_audit_events

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/audit-events", response_model=AuditEventListResponse)
async def list_audit_events_endpoint(
    page: int = Query(1),
    page_size: int = Query(20, le=100),
    entity: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    actor: Optional[CurrentUser] = Depends(get_current_user),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Audit trail of lifecycle mutations, newest first."""
    result = await list_audit_events(gateway, actor, page, page_size, entity, action)
    return AuditEventListResponse(
        items=[AuditEventResponse.model_validate(e) for e in result.items],
        pagination=PaginationMeta.from_slice(result),
    )
