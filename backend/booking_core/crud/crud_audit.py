from typing import Any, List, Optional

from sqlalchemy.orm import Session

from .. import models


def record(
    db: Session,
    *,
    entity_type: str,
    entity_id: int,
    action: str,
    actor_id: Optional[int] = None,
    from_state: Optional[str] = None,
    to_state: Optional[str] = None,
    reason: Optional[str] = None,
    changes: Optional[dict[str, Any]] = None,
) -> models.AuditLog:
    """Stage an audit entry in the caller's transaction.

    Nothing is committed here: the entry lands together with the change it
    describes or not at all.
    """
    entry = models.AuditLog(
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        from_state=from_state,
        to_state=to_state,
        reason=reason,
        changes=changes,
    )
    db.add(entry)
    db.flush()
    return entry


def list_for_entity(db: Session, entity_type: str, entity_id: int) -> List[models.AuditLog]:
    return (
        db.query(models.AuditLog)
        .filter(
            models.AuditLog.entity_type == entity_type,
            models.AuditLog.entity_id == entity_id,
        )
        .order_by(models.AuditLog.timestamp.asc(), models.AuditLog.id.asc())
        .all()
    )
