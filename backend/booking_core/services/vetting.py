"""Performer vetting: applications and the approval saga."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import models, schemas
from ..crud import crud_audit, crud_vetting
from ..models.base import utcnow
from ..models.vetting_application import VettingStatus
from ..utils import notifications
from ..utils.errors import (
    AlreadyApproved,
    ConcurrentModification,
    InvalidTransition,
    MissingReason,
    VettingAlreadyPending,
)

logger = logging.getLogger(__name__)


def _decided_elsewhere() -> ConcurrentModification:
    return ConcurrentModification(
        "Application was reviewed by someone else, please refresh and retry",
        field="decision",
    )


def submit_application(
    db: Session,
    user: models.User,
    application_in: schemas.VettingApplicationCreate,
) -> models.VettingApplication:
    if user.performer_profile is not None or crud_vetting.get_application_with_status(
        db, user.id, VettingStatus.APPROVED
    ):
        raise AlreadyApproved("This account is already an approved performer")
    if crud_vetting.get_application_with_status(db, user.id, VettingStatus.PENDING):
        raise VettingAlreadyPending("An application is already waiting for review")

    application = crud_vetting.build_application(user.id, application_in.model_dump())
    try:
        db.add(application)
        db.flush()
        crud_audit.record(
            db,
            entity_type="vetting_application",
            entity_id=application.id,
            action="application_submitted",
            actor_id=user.id,
            to_state=VettingStatus.PENDING.value,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(application)
    logger.info("Vetting application %s submitted by user %s", application.id, user.id)
    notifications.best_effort(
        notifications.notify_vetting_submitted,
        db,
        application,
        correlation_id=f"vetting-{application.id}",
    )
    return application


class VettingApprovalSaga:
    """Approve an application and create everything an approved performer needs.

    Steps run in order inside one transaction. If any step raises, every
    earlier step is rolled back with it and the application stays pending.
    """

    STEPS = (
        "mark_approved",
        "create_performer_profile",
        "promote_user_role",
        "record_audit",
    )

    def __init__(
        self,
        db: Session,
        application: models.VettingApplication,
        admin: models.User,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ):
        self.db = db
        self.application = application
        self.admin = admin
        self.notes = notes
        self.now = now or utcnow()
        self.profile: Optional[models.PerformerProfile] = None
        self.completed: list[str] = []

    def mark_approved(self) -> None:
        self.application.status = VettingStatus.APPROVED
        self.application.reviewer_id = self.admin.id
        self.application.reviewed_at = self.now
        self.application.review_notes = self.notes
        self.db.flush()

    def create_performer_profile(self) -> None:
        application = self.application
        self.profile = models.PerformerProfile(
            user_id=application.user_id,
            application_id=application.id,
            stage_name=application.stage_name,
            bio=application.bio,
            location=application.location,
            is_available=True,
            verified=True,
        )
        self.db.add(self.profile)
        self.db.flush()

    def promote_user_role(self) -> None:
        applicant = self.application.applicant
        if applicant.user_type == models.UserType.CLIENT:
            applicant.user_type = models.UserType.PERFORMER
        if not applicant.phone_number:
            applicant.phone_number = self.application.phone
        self.db.flush()

    def record_audit(self) -> None:
        crud_audit.record(
            self.db,
            entity_type="vetting_application",
            entity_id=self.application.id,
            action="application_approved",
            actor_id=self.admin.id,
            from_state=VettingStatus.PENDING.value,
            to_state=VettingStatus.APPROVED.value,
            reason=self.notes,
            changes={"performer_profile_id": self.profile.id if self.profile else None},
        )

    def run(self) -> models.PerformerProfile:
        step = None
        try:
            for step in self.STEPS:
                getattr(self, step)()
                self.completed.append(step)
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            logger.warning(
                "Vetting application %s was decided concurrently (at %s): %s",
                self.application.id,
                step,
                exc,
            )
            raise _decided_elsewhere() from exc
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "Vetting approval %s hit a constraint at %s: %s", self.application.id, step, exc
            )
            raise AlreadyApproved("Applicant already has a performer profile") from exc
        except Exception as exc:
            self.db.rollback()
            logger.warning(
                "Vetting approval %s failed at %s after %s: %s",
                self.application.id,
                step,
                self.completed,
                exc,
            )
            raise
        self.db.refresh(self.profile)
        return self.profile


def review_application(
    db: Session,
    application: models.VettingApplication,
    decision: str,
    *,
    admin: models.User,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[models.PerformerProfile]:
    """Approve or reject a pending application.

    Returns the new performer profile on approval, None on rejection.
    """
    target = VettingStatus(decision)
    if application.status != VettingStatus.PENDING:
        raise InvalidTransition(
            f"Application is already {application.status.value}", field="decision"
        )

    profile = None
    if target == VettingStatus.APPROVED:
        if application.applicant.performer_profile is not None:
            raise AlreadyApproved("Applicant already has a performer profile")
        profile = VettingApprovalSaga(db, application, admin, notes, now).run()
    elif target == VettingStatus.REJECTED:
        if not (notes and notes.strip()):
            raise MissingReason("Notes are required when rejecting an application", field="notes")
        try:
            application.status = VettingStatus.REJECTED
            application.reviewer_id = admin.id
            application.reviewed_at = now or utcnow()
            application.review_notes = notes
            crud_audit.record(
                db,
                entity_type="vetting_application",
                entity_id=application.id,
                action="application_rejected",
                actor_id=admin.id,
                from_state=VettingStatus.PENDING.value,
                to_state=VettingStatus.REJECTED.value,
                reason=notes,
            )
            db.commit()
        except StaleDataError as exc:
            db.rollback()
            logger.warning("Vetting application %s was decided concurrently: %s", application.id, exc)
            raise _decided_elsewhere() from exc
        except Exception:
            db.rollback()
            raise
    else:
        raise InvalidTransition("Decision must be approved or rejected", field="decision")

    db.refresh(application)
    logger.info(
        "Vetting application %s %s by admin %s", application.id, application.status.value, admin.id
    )
    notifications.best_effort(
        notifications.notify_vetting_decision,
        db,
        application,
        correlation_id=f"vetting-{application.id}",
    )
    return profile
