from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from .. import models


def create_notification(
    db: Session,
    user_id: int,
    type: models.NotificationType,
    message: str,
    link: str,
) -> models.Notification:
    db_obj = models.Notification(user_id=user_id, type=type, message=message, link=link)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_notifications_for_user(
    db: Session, user_id: int, skip: int = 0, limit: int | None = None, unread_only: bool = False
) -> List[models.Notification]:
    """Return notifications ordered by timestamp with optional pagination."""
    query = (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id)
        .order_by(models.Notification.timestamp.desc(), models.Notification.id.desc())
    )
    if unread_only:
        query = query.filter(models.Notification.is_read.is_(False))
    if skip:
        query = query.offset(skip)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_notification(db: Session, notification_id: int) -> models.Notification | None:
    return (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id)
        .first()
    )


def mark_as_read(db: Session, notification: models.Notification) -> models.Notification:
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def delete_read_before(db: Session, cutoff: datetime) -> int:
    """Delete read notifications older than ``cutoff`` and return the count."""
    deleted = (
        db.query(models.Notification)
        .filter(
            models.Notification.is_read.is_(True),
            models.Notification.timestamp < cutoff,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
