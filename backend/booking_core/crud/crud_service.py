import logging
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..services.quote_calculator import ServiceRate
from ..utils.errors import UnknownService
from . import crud_audit

logger = logging.getLogger(__name__)


def get_service(db: Session, service_id: int) -> Optional[models.Service]:
    return db.query(models.Service).filter(models.Service.id == service_id).first()


def get_performer(db: Session, performer_id: int) -> Optional[models.PerformerProfile]:
    return (
        db.query(models.PerformerProfile)
        .filter(models.PerformerProfile.id == performer_id)
        .first()
    )


def list_services(
    db: Session, category: Optional[str] = None, include_inactive: bool = False
) -> List[models.Service]:
    query = db.query(models.Service)
    if not include_inactive:
        query = query.filter(models.Service.is_active.is_(True))
    if category:
        query = query.filter(func.lower(models.Service.category) == category.lower())
    return query.order_by(models.Service.category.asc(), models.Service.name.asc()).all()


def create_service(db: Session, service_in: schemas.ServiceCreate, admin_id: int) -> models.Service:
    db_service = models.Service(**service_in.model_dump(), is_active=True)
    try:
        db.add(db_service)
        db.flush()
        crud_audit.record(
            db,
            entity_type="service",
            entity_id=db_service.id,
            action="service_created",
            actor_id=admin_id,
            changes={"name": db_service.name, "base_rate": str(db_service.base_rate)},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_service)
    logger.info("Service %s (%s) created by admin %s", db_service.id, db_service.name, admin_id)
    return db_service


def update_service(
    db: Session, db_service: models.Service, changes: dict[str, Any], admin_id: int
) -> models.Service:
    before = {field: str(getattr(db_service, field)) for field in changes}
    for field, value in changes.items():
        setattr(db_service, field, value)
    try:
        crud_audit.record(
            db,
            entity_type="service",
            entity_id=db_service.id,
            action="service_updated",
            actor_id=admin_id,
            changes={
                "before": before,
                "after": {field: str(value) for field, value in changes.items()},
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_service)
    return db_service


def list_performers(
    db: Session,
    *,
    service_id: Optional[int] = None,
    location: Optional[str] = None,
    available: Optional[bool] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[models.PerformerProfile]:
    """Public performer directory; profiles of deactivated users are hidden."""
    query = (
        db.query(models.PerformerProfile)
        .join(models.User, models.PerformerProfile.user_id == models.User.id)
        .filter(models.User.is_active.is_(True))
        .options(
            selectinload(models.PerformerProfile.services).selectinload(models.PerformerService.service)
        )
    )
    if available is not None:
        query = query.filter(models.PerformerProfile.is_available.is_(available))
    if location:
        query = query.filter(models.PerformerProfile.location.ilike(f"%{location}%"))
    if service_id is not None:
        query = query.filter(
            models.PerformerProfile.services.any(
                (models.PerformerService.service_id == service_id)
                & models.PerformerService.is_available.is_(True)
            )
        )
    return (
        query.order_by(models.PerformerProfile.stage_name.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def upsert_offering(
    db: Session,
    performer: models.PerformerProfile,
    db_service: models.Service,
    offering_in: schemas.OfferingUpdate,
    actor_id: int,
) -> models.PerformerService:
    """Attach ``db_service`` to the performer, or update the existing terms."""
    offering = get_offering(db, db_service.id, performer.id)
    action = "offering_updated"
    if offering is None:
        offering = models.PerformerService(performer_id=performer.id, service_id=db_service.id)
        db.add(offering)
        action = "offering_added"
    offering.custom_rate = offering_in.custom_rate
    offering.is_available = offering_in.is_available
    try:
        db.flush()
        crud_audit.record(
            db,
            entity_type="performer",
            entity_id=performer.id,
            action=action,
            actor_id=actor_id,
            changes={
                "service_id": db_service.id,
                "custom_rate": str(offering.custom_rate) if offering.custom_rate is not None else None,
                "is_available": offering.is_available,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(offering)
    return offering


def set_availability(
    db: Session, performer: models.PerformerProfile, is_available: bool, actor_id: int
) -> models.PerformerProfile:
    previous = performer.is_available
    performer.is_available = is_available
    try:
        crud_audit.record(
            db,
            entity_type="performer",
            entity_id=performer.id,
            action="availability_updated",
            actor_id=actor_id,
            from_state="available" if previous else "unavailable",
            to_state="available" if is_available else "unavailable",
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(performer)
    logger.info("Performer %s availability set to %s", performer.id, is_available)
    return performer


def get_offering(
    db: Session, service_id: int, performer_id: int
) -> Optional[models.PerformerService]:
    return (
        db.query(models.PerformerService)
        .filter(
            models.PerformerService.service_id == service_id,
            models.PerformerService.performer_id == performer_id,
        )
        .first()
    )


def resolve_service_rate(
    db: Session, service_id: int, performer_id: int
) -> Tuple[ServiceRate, models.PerformerService]:
    """Return the rate a performer charges for a service.

    Raises :class:`UnknownService` unless the service is active, the
    performer is available, and the performer offers the service.
    """
    offering = get_offering(db, service_id, performer_id)
    if offering is None or not offering.is_available:
        raise UnknownService(
            f"Performer {performer_id} does not offer service {service_id}"
        )
    service = offering.service
    performer = offering.performer
    if not service.is_active:
        raise UnknownService(f"Service {service_id} is not active")
    if not performer.is_available:
        raise UnknownService(f"Performer {performer_id} is not taking bookings", field="performer_id")

    base_rate = offering.effective_rate
    min_hours = None
    if service.min_duration_minutes:
        min_hours = Decimal(service.min_duration_minutes) / Decimal(60)
    return (
        ServiceRate(
            base_rate=Decimal(str(base_rate)),
            rate_type=service.rate_type,
            min_duration_hours=min_hours,
        ),
        offering,
    )
