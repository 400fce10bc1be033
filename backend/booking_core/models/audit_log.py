from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text

from .base import BaseModel, utcnow


class AuditLog(BaseModel):
    """Append-only record of every state change made to a core entity."""

    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id", "timestamp"),)

    id = Column(Integer, primary_key=True, index=True)
    # Null for system-initiated changes (maintenance jobs)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    entity_type = Column(String(40), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(60), nullable=False)
    from_state = Column(String(40), nullable=True)
    to_state = Column(String(40), nullable=True)
    reason = Column(Text, nullable=True)
    changes = Column(JSON, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
