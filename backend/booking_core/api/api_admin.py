import logging
from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..crud import crud_audit, crud_do_not_serve, crud_payment, crud_settings, crud_vetting
from ..database import get_db
from ..models.booking_status import BookingStatus
from ..models.vetting_application import VettingStatus
from ..utils.errors import NotFound
from .dependencies import get_current_admin

router = APIRouter(tags=["admin"])
logger = logging.getLogger(__name__)

# Bookings waiting on an admin decision
REVIEW_STATUSES = (BookingStatus.PENDING, BookingStatus.QUOTE_REQUESTED)
AUDITED_ENTITIES = {
    "booking",
    "payment",
    "vetting_application",
    "system_settings",
    "do_not_serve",
    "service",
    "performer",
}


@router.get("/admin/queues/bookings")
def booking_queue(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    """Bookings awaiting a quote or rejection, plus late cancellations to review."""
    awaiting = crud.booking.get_bookings_by_status(db, REVIEW_STATUSES, skip=skip, limit=limit)
    reviews = crud.booking.get_cancellation_reviews(db)
    return {
        "awaiting_quote": [schemas.BookingResponse.model_validate(b) for b in awaiting],
        "cancellation_reviews": [schemas.BookingResponse.model_validate(b) for b in reviews],
    }


@router.get("/admin/queues/payments")
def payment_queue(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    pending = crud_payment.get_pending_queue(db, skip=skip, limit=limit)
    mismatches = crud_payment.get_unresolved_mismatches(db, skip=skip, limit=limit)
    return {
        "pending_verification": [schemas.PaymentResponse.model_validate(p) for p in pending],
        "amount_mismatches": [schemas.PaymentResponse.model_validate(p) for p in mismatches],
    }


@router.get("/admin/queues/vetting", response_model=List[schemas.VettingApplicationResponse])
def vetting_queue(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    return crud_vetting.get_applications_by_status(db, VettingStatus.PENDING, skip=skip, limit=limit)


@router.get("/admin/settings", response_model=schemas.SystemSettingsResponse)
def read_settings(
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    row = crud_settings.get_settings(db)
    db.commit()
    return row


@router.put("/admin/settings", response_model=schemas.SystemSettingsResponse)
def update_settings(
    settings_in: schemas.SystemSettingsUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    changes = settings_in.model_dump(exclude_unset=True)
    row = crud_settings.update_settings(db, changes, admin.id)
    logger.info("System settings updated by admin %s: %s", admin.id, sorted(changes))
    return row


@router.get("/admin/do-not-serve", response_model=List[schemas.DoNotServeResponse])
def list_do_not_serve(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    return crud_do_not_serve.list_entries(db, include_inactive=include_inactive)


@router.post(
    "/admin/do-not-serve",
    response_model=schemas.DoNotServeResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_do_not_serve(
    entry_in: schemas.DoNotServeCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    entry = crud_do_not_serve.create_entry(
        db,
        reason=entry_in.reason,
        added_by=admin.id,
        client_id=entry_in.client_id,
        client_email=entry_in.client_email,
        client_phone=entry_in.client_phone,
    )
    crud_audit.record(
        db,
        entity_type="do_not_serve",
        entity_id=entry.id,
        action="client_blocked",
        actor_id=admin.id,
        reason=entry.reason,
    )
    db.commit()
    logger.info("Admin %s added do-not-serve entry %s", admin.id, entry.id)
    return entry


@router.delete("/admin/do-not-serve/{entry_id}", response_model=schemas.DoNotServeResponse)
def remove_do_not_serve(
    entry_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    entry = crud_do_not_serve.get_entry(db, entry_id)
    if entry is None:
        raise NotFound("Registry entry not found", field="entry_id")
    crud_audit.record(
        db,
        entity_type="do_not_serve",
        entity_id=entry.id,
        action="client_unblocked",
        actor_id=admin.id,
    )
    return crud_do_not_serve.deactivate_entry(db, entry)


@router.get("/audit/{entity_type}/{entity_id}", response_model=List[schemas.AuditLogResponse])
def read_audit_trail(
    entity_type: str,
    entity_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    if entity_type not in AUDITED_ENTITIES:
        raise NotFound(f"No audit trail for {entity_type}", field="entity_type")
    return crud_audit.list_for_entity(db, entity_type, entity_id)
