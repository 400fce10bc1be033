from typing import Any, List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..models.vetting_application import VettingStatus


def get_application(db: Session, application_id: int) -> Optional[models.VettingApplication]:
    return (
        db.query(models.VettingApplication)
        .filter(models.VettingApplication.id == application_id)
        .first()
    )


def get_applications_for_user(db: Session, user_id: int) -> List[models.VettingApplication]:
    return (
        db.query(models.VettingApplication)
        .filter(models.VettingApplication.user_id == user_id)
        .order_by(models.VettingApplication.created_at.desc(), models.VettingApplication.id.desc())
        .all()
    )


def get_application_with_status(
    db: Session, user_id: int, status: VettingStatus
) -> Optional[models.VettingApplication]:
    return (
        db.query(models.VettingApplication)
        .filter(
            models.VettingApplication.user_id == user_id,
            models.VettingApplication.status == status,
        )
        .first()
    )


def get_applications_by_status(
    db: Session, status: VettingStatus, skip: int = 0, limit: int = 100
) -> List[models.VettingApplication]:
    return (
        db.query(models.VettingApplication)
        .filter(models.VettingApplication.status == status)
        .order_by(models.VettingApplication.created_at.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def build_application(user_id: int, fields: dict[str, Any]) -> models.VettingApplication:
    return models.VettingApplication(user_id=user_id, status=VettingStatus.PENDING, **fields)
