"""
Audit trail of lifecycle mutations. Append-only.
"""

from sqlalchemy import JSON, Column, Index, String

from charter.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class AuditEvent(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "audit_events"

    actor_id = Column(String(64), nullable=False, index=True)
    actor_role = Column(String(20), nullable=False)
    action = Column(String(64), nullable=False)
    entity = Column(String(64), nullable=False)
    entity_id = Column(String(64), nullable=False)
    outcome = Column(String(20), nullable=False, default="SUCCESS")
    details = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_audit_events_entity", "entity", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditEvent(action={self.action}, entity={self.entity}:{self.entity_id})>"
