from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models
from ..utils.auth import normalize_email


def list_entries(db: Session, include_inactive: bool = False) -> List[models.DoNotServeEntry]:
    query = db.query(models.DoNotServeEntry)
    if not include_inactive:
        query = query.filter(models.DoNotServeEntry.is_active.is_(True))
    return query.order_by(models.DoNotServeEntry.created_at.desc()).all()


def get_entry(db: Session, entry_id: int) -> Optional[models.DoNotServeEntry]:
    return db.query(models.DoNotServeEntry).filter(models.DoNotServeEntry.id == entry_id).first()


def create_entry(
    db: Session,
    *,
    reason: str,
    added_by: int,
    client_id: Optional[int] = None,
    client_email: Optional[str] = None,
    client_phone: Optional[str] = None,
) -> models.DoNotServeEntry:
    entry = models.DoNotServeEntry(
        client_id=client_id,
        client_email=normalize_email(client_email) if client_email else None,
        client_phone=client_phone.strip() if client_phone else None,
        reason=reason,
        added_by=added_by,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def deactivate_entry(db: Session, entry: models.DoNotServeEntry) -> models.DoNotServeEntry:
    entry.is_active = False
    db.commit()
    db.refresh(entry)
    return entry


def find_block(db: Session, user: models.User) -> Optional[models.DoNotServeEntry]:
    """Return the active registry entry matching ``user``, if any."""
    clauses = [
        models.DoNotServeEntry.client_id == user.id,
        func.lower(models.DoNotServeEntry.client_email) == normalize_email(user.email),
    ]
    if user.phone_number:
        clauses.append(models.DoNotServeEntry.client_phone == user.phone_number.strip())
    return (
        db.query(models.DoNotServeEntry)
        .filter(models.DoNotServeEntry.is_active.is_(True), or_(*clauses))
        .first()
    )
