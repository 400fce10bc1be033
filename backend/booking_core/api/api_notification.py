from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from .. import models, schemas, crud
from ..utils.errors import NotFound
from .dependencies import get_db, get_current_user

router = APIRouter(tags=["notifications"])

logger = logging.getLogger(__name__)


@router.get("/notifications", response_model=List[schemas.NotificationResponse])
def read_my_notifications(
    skip: int = 0,
    limit: int = 20,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return crud.crud_notification.get_notifications_for_user(
        db, current_user.id, skip=skip, limit=limit, unread_only=unread_only
    )


@router.post("/notifications/{notification_id}/read", response_model=schemas.NotificationResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    notification = crud.crud_notification.get_notification(db, notification_id)
    # other users' notifications are reported as missing
    if notification is None or notification.user_id != current_user.id:
        raise NotFound("Notification not found", field="notification_id")
    return crud.crud_notification.mark_as_read(db, notification)
