"""
Pydantic schemas for the admin audit trail.
"""

from datetime import datetime

from pydantic import BaseModel

from charter.schemas.common import PaginationMeta


class AuditEventResponse(BaseModel):
    id: str
    actor_id: str
    actor_role: str
    action: str
    entity: str
    entity_id: str
    outcome: str
    details: dict
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditEventListResponse(BaseModel):
    items: list[AuditEventResponse]
    pagination: PaginationMeta
