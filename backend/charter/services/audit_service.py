"""
Audit trail for lifecycle mutations.

Audit rows are written through the same gateway, inside the same atomic
group as the change they describe, so a rolled-back transition leaves no
audit row behind.
"""

from typing import Optional

from charter.core.logging import get_logger
from charter.core.security import CurrentUser, require_role, ROLE_ADMIN
from charter.domain.query import PageSlice, apply_filters, by_field, paginate
from charter.models.audit_event import AuditEvent
from charter.services.interfaces.persistence import PersistenceGateway

logger = get_logger(__name__)


async def record_audit(
    gateway: PersistenceGateway,
    actor: CurrentUser,
    action: str,
    entity: str,
    entity_id: str,
    outcome: str = "SUCCESS",
    **details,
) -> AuditEvent:
    event = AuditEvent(
        actor_id=actor.id,
        actor_role=actor.role,
        action=action,
        entity=entity,
        entity_id=entity_id,
        outcome=outcome,
        details={key: str(value) for key, value in details.items()},
    )
    await gateway.insert(event)
    logger.info("audit_recorded", action=action, entity=entity, entity_id=entity_id, outcome=outcome)
    return event


async def list_audit_events(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    page: int = 1,
    page_size: int = 20,
    entity: Optional[str] = None,
    action: Optional[str] = None,
) -> PageSlice:
    """Admin view of the audit trail, newest first."""
    require_role(actor, ROLE_ADMIN)
    events = await gateway.query(AuditEvent, order_by=(AuditEvent.created_at.desc(),))
    events = apply_filters(events, by_field("entity", entity), by_field("action", action))
    return paginate(events, page, page_size)
