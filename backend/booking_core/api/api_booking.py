# backend/booking_core/api/api_booking.py

import logging
from typing import Any, List

from fastapi import APIRouter, Depends, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from .. import crud, models
from ..database import get_db
from ..schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
    TransitionResponse,
)
from ..services import access_policy
from ..services.access_policy import Action
from ..services.booking_state import transition_booking
from ..utils import notifications
from .dependencies import get_booking_or_404, get_current_active_user

router = APIRouter(tags=["bookings"], default_response_class=ORJSONResponse)
logger = logging.getLogger(__name__)
# ‣ Note: no prefix here.  main.py already does:
#     app.include_router(router, prefix="/api/v1/bookings", …)


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    *,
    db: Session = Depends(get_db),
    booking_in: BookingCreate,
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    """
    Create a new booking in ``pending`` with its quote already calculated.
    """
    booking = crud.booking.create_booking(db, booking_in, current_user)
    notifications.best_effort(
        notifications.notify_booking_created, db, booking, correlation_id=booking.reference
    )
    return booking


@router.get("/my", response_model=List[BookingResponse])
def read_my_bookings(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    """Bookings the caller made, plus those assigned to them as a performer."""
    bookings = crud.booking.get_bookings_by_client(db, current_user.id, skip=skip, limit=limit)
    if current_user.performer_profile is not None:
        seen = {b.id for b in bookings}
        bookings += [
            b
            for b in crud.booking.get_bookings_by_performer(
                db, current_user.performer_profile.id, skip=skip, limit=limit
            )
            if b.id not in seen
        ]
    return bookings


@router.get("/{booking_id}", response_model=BookingResponse)
def read_booking(
    booking: models.Booking = Depends(get_booking_or_404),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    access_policy.require(current_user, Action.VIEW_BOOKING, booking)
    return booking


@router.patch("/{booking_id}", response_model=BookingResponse)
def update_booking(
    booking_in: BookingUpdate,
    booking: models.Booking = Depends(get_booking_or_404),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    access_policy.require(current_user, Action.EDIT_BOOKING, booking)
    return crud.booking.update_details(db, booking, booking_in, current_user)


@router.post("/{booking_id}/status", response_model=TransitionResponse)
def update_booking_status(
    status_in: BookingStatusUpdate,
    booking: models.Booking = Depends(get_booking_or_404),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    access_policy.require(current_user, access_policy.action_for_transition(status_in.status), booking)
    outcome = transition_booking(
        db, booking, status_in.status, actor=current_user, reason=status_in.reason
    )
    return TransitionResponse(
        booking=BookingResponse.model_validate(outcome.booking),
        new_status=outcome.booking.status,
        flagged_for_review=outcome.flagged_for_review,
        message=outcome.message,
    )
