import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..core.config import settings
from ..models.base import to_naive_utc, utcnow
from ..models.booking_status import BookingStatus, BookingPaymentStatus, TERMINAL_STATUSES
from ..services.quote_calculator import calculate_quote
from ..utils.errors import ClientBlocked, ConcurrentModification, InvalidEventDate, InvalidTransition
from . import crud_audit, crud_do_not_serve, crud_payment, crud_service, crud_settings

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "FE"
MAX_REFERENCE_ATTEMPTS = 5

# Statuses in which the client may still change event details
EDITABLE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.QUOTE_REQUESTED, BookingStatus.QUOTE_SENT}
)


def next_reference(db: Session, when: datetime) -> str:
    """Return the next free ``FE-YYYYMMDD-NNNN`` reference for ``when``'s day."""
    prefix = f"{REFERENCE_PREFIX}-{when:%Y%m%d}-"
    # Suffixes are zero-padded, so a longer one is always the larger number
    last = (
        db.query(models.Booking.reference)
        .filter(models.Booking.reference.like(f"{prefix}%"))
        .order_by(func.length(models.Booking.reference).desc(), models.Booking.reference.desc())
        .limit(1)
        .scalar()
    )
    seq = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


def check_event_date(event_date: datetime, now: datetime) -> datetime:
    event_date = to_naive_utc(event_date)
    lead = timedelta(hours=settings.MIN_BOOKING_LEAD_HOURS)
    if event_date < now + lead:
        raise InvalidEventDate(
            f"Event must be at least {settings.MIN_BOOKING_LEAD_HOURS} hours in the future"
        )
    return event_date


def _merged(changes: dict[str, Any], db_booking: models.Booking, field: str) -> Any:
    value = changes.get(field)
    return value if value is not None else getattr(db_booking, field)


class CRUDBooking:
    def get_booking(self, db: Session, booking_id: int) -> Optional[models.Booking]:
        return db.query(models.Booking).filter(models.Booking.id == booking_id).first()

    def get_bookings_by_client(
        self, db: Session, client_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.client_id == client_id)
            .order_by(models.Booking.event_date.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_bookings_by_performer(
        self, db: Session, performer_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.performer_id == performer_id)
            .order_by(models.Booking.event_date.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_bookings_by_status(
        self,
        db: Session,
        statuses: Iterable[BookingStatus],
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.status.in_(list(statuses)))
            .order_by(models.Booking.created_at.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_cancellation_reviews(self, db: Session) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(
                models.Booking.cancellation_review_requested.is_(True),
                models.Booking.status.notin_(list(TERMINAL_STATUSES)),
            )
            .order_by(models.Booking.cancellation_requested_at.asc())
            .all()
        )

    def create_booking(
        self,
        db: Session,
        booking_in: schemas.BookingCreate,
        client: models.User,
        now: Optional[datetime] = None,
    ) -> models.Booking:
        """Validate, price and persist a new booking in ``pending``."""
        now = now or utcnow()
        event_date = check_event_date(booking_in.event_date, now)

        block = crud_do_not_serve.find_block(db, client)
        if block is not None:
            logger.warning("Blocked client %s attempted a booking (entry %s)", client.id, block.id)
            raise ClientBlocked("This account cannot make bookings. Please contact support.")

        rate, offering = crud_service.resolve_service_rate(
            db, booking_in.service_id, booking_in.performer_id
        )
        quote = calculate_quote(
            rate,
            crud_settings.quote_settings_for(db, offering.performer),
            booking_in.duration_hours,
            booking_in.guest_count,
        )

        for attempt in range(1, MAX_REFERENCE_ATTEMPTS + 1):
            db_booking = models.Booking(
                reference=next_reference(db, now),
                client_id=client.id,
                performer_id=booking_in.performer_id,
                service_id=booking_in.service_id,
                event_date=event_date,
                duration_hours=booking_in.duration_hours,
                venue_address=booking_in.venue_address,
                event_type=booking_in.event_type,
                guest_count=booking_in.guest_count,
                special_requirements=booking_in.special_requirements,
                status=BookingStatus.PENDING,
                payment_status=BookingPaymentStatus.UNPAID,
                **quote.as_booking_fields(),
            )
            db.add(db_booking)
            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                logger.info("Booking reference collision on attempt %s; retrying", attempt)
                continue
            crud_audit.record(
                db,
                entity_type="booking",
                entity_id=db_booking.id,
                action="booking_created",
                actor_id=client.id,
                to_state=BookingStatus.PENDING.value,
                changes={"reference": db_booking.reference, "total_amount": str(quote.total_amount)},
            )
            db.commit()
            db.refresh(db_booking)
            logger.info(
                "Created booking %s (%s) for client %s total=%s",
                db_booking.id,
                db_booking.reference,
                client.id,
                db_booking.total_amount,
            )
            return db_booking
        raise ConcurrentModification("Could not allocate a booking reference, please retry")

    def update_details(
        self,
        db: Session,
        db_booking: models.Booking,
        booking_in: schemas.BookingUpdate,
        actor: models.User,
        now: Optional[datetime] = None,
    ) -> models.Booking:
        """Apply pre-confirmation edits and re-price the booking."""
        now = now or utcnow()
        if db_booking.status not in EDITABLE_STATUSES:
            raise InvalidTransition(
                f"Booking details cannot change once it is {db_booking.status.value}"
            )
        if db_booking.payment_status != BookingPaymentStatus.UNPAID or crud_payment.get_pending_for_booking(
            db, db_booking.id
        ):
            raise InvalidTransition("Booking details cannot change after a payment was submitted")

        changes: dict[str, Any] = booking_in.model_dump(exclude_unset=True)
        if "event_date" in changes and changes["event_date"] is not None:
            changes["event_date"] = check_event_date(changes["event_date"], now)

        rate, offering = crud_service.resolve_service_rate(
            db, db_booking.service_id, db_booking.performer_id
        )
        quote = calculate_quote(
            rate,
            crud_settings.quote_settings_for(db, offering.performer),
            _merged(changes, db_booking, "duration_hours"),
            _merged(changes, db_booking, "guest_count"),
        )

        before = {field: str(getattr(db_booking, field)) for field in changes}
        for field, value in changes.items():
            if value is not None:
                setattr(db_booking, field, value)
        for field, value in quote.as_booking_fields().items():
            setattr(db_booking, field, value)

        try:
            crud_audit.record(
                db,
                entity_type="booking",
                entity_id=db_booking.id,
                action="booking_updated",
                actor_id=actor.id,
                changes={
                    "before": before,
                    "after": {field: str(value) for field, value in changes.items()},
                    "total_amount": str(quote.total_amount),
                },
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(db_booking)
        return db_booking


booking = CRUDBooking()
