# backend/booking_core/api/api_performer.py

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import crud_service
from ..database import get_db
from ..utils.errors import NotFound
from .dependencies import get_current_performer

router = APIRouter(tags=["performers"])  # main mounts it under "/api/v1/performers"
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[schemas.PerformerResponse])
def list_performers(
    service_id: Optional[int] = None,
    location: Optional[str] = None,
    available: Optional[bool] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
) -> Any:
    """Public performer directory with each performer's current offerings."""
    return crud_service.list_performers(
        db,
        service_id=service_id,
        location=location,
        available=available,
        skip=skip,
        limit=limit,
    )


@router.get("/me", response_model=schemas.PerformerResponse)
def read_my_profile(performer: models.PerformerProfile = Depends(get_current_performer)) -> Any:
    return performer


@router.post("/me/availability", response_model=schemas.PerformerResponse)
def toggle_availability(
    availability_in: schemas.AvailabilityUpdate,
    db: Session = Depends(get_db),
    performer: models.PerformerProfile = Depends(get_current_performer),
) -> Any:
    """Switch whether the caller takes new bookings."""
    return crud_service.set_availability(
        db, performer, availability_in.is_available, performer.user_id
    )


@router.put("/me/services/{service_id}", response_model=schemas.OfferingResponse)
def offer_service(
    service_id: int,
    offering_in: schemas.OfferingUpdate,
    db: Session = Depends(get_db),
    performer: models.PerformerProfile = Depends(get_current_performer),
) -> Any:
    """Offer a catalogue service, optionally at the performer's own rate."""
    service = crud_service.get_service(db, service_id)
    if service is None or not service.is_active:
        raise NotFound("Service not found", field="service_id")
    offering = crud_service.upsert_offering(db, performer, service, offering_in, performer.user_id)
    logger.info(
        "Performer %s offers service %s at %s", performer.id, service.id, offering.effective_rate
    )
    return offering


@router.get("/{performer_id}", response_model=schemas.PerformerResponse)
def read_performer(performer_id: int, db: Session = Depends(get_db)) -> Any:
    performer = crud_service.get_performer(db, performer_id)
    if performer is None or not performer.user.is_active:
        raise NotFound("Performer not found", field="performer_id")
    return performer
