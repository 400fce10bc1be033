import logging
from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import crud_vetting
from ..database import get_db
from ..services import vetting
from ..utils.errors import NotFound
from .dependencies import get_current_active_user, get_current_admin

router = APIRouter(tags=["vetting"])
logger = logging.getLogger(__name__)


@router.post(
    "/applications",
    response_model=schemas.VettingApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_application(
    application_in: schemas.VettingApplicationCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    return vetting.submit_application(db, current_user, application_in)


@router.get("/applications/me", response_model=List[schemas.VettingApplicationResponse])
def read_my_applications(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    return crud_vetting.get_applications_for_user(db, current_user.id)


@router.post("/applications/{application_id}/review", response_model=schemas.VettingDecisionResponse)
def review_application(
    application_id: int,
    review_in: schemas.VettingReview,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    application = crud_vetting.get_application(db, application_id)
    if application is None:
        raise NotFound("Application not found", field="application_id")
    profile = vetting.review_application(
        db, application, review_in.decision, admin=admin, notes=review_in.notes
    )
    return schemas.VettingDecisionResponse(
        application=schemas.VettingApplicationResponse.model_validate(application),
        performer=schemas.PerformerProfileResponse.model_validate(profile) if profile else None,
    )
