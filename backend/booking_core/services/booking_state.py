"""Booking state machine.

``BOOKING_TRANSITIONS`` is the complete list of allowed moves. A transition
and its audit entry are written in one transaction; notifications go out
only after that transaction commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import models
from ..core.config import settings
from ..models.base import utcnow
from ..models.booking_status import BookingStatus, BookingPaymentStatus
from ..utils import notifications
from ..utils.errors import ConcurrentModification, InvalidTransition, MissingReason
from .quote_calculator import calculate_quote

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {
            BookingStatus.QUOTE_REQUESTED,
            BookingStatus.QUOTE_SENT,
            BookingStatus.REJECTED,
            BookingStatus.CANCELLED,
        }
    ),
    BookingStatus.QUOTE_REQUESTED: frozenset(
        {BookingStatus.QUOTE_SENT, BookingStatus.REJECTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.QUOTE_SENT: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REJECTED: frozenset(),
}

PAID_STATUSES = frozenset({BookingPaymentStatus.DEPOSIT_PAID, BookingPaymentStatus.FULLY_PAID})


@dataclass
class TransitionOutcome:
    booking: models.Booking
    from_status: BookingStatus
    to_status: BookingStatus
    reason: Optional[str] = None
    flagged_for_review: bool = False

    @property
    def message(self) -> str:
        if self.flagged_for_review:
            return "Cancellation is too close to the event and has been sent for admin review"
        return f"Booking moved from {self.from_status.value} to {self.to_status.value}"


def is_allowed(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, frozenset())


def assert_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    if not is_allowed(current, target):
        raise InvalidTransition(
            f"Invalid booking transition: {current.value} -> {target.value}"
        )


def _is_client_request(actor: Optional[models.User]) -> bool:
    return actor is not None and actor.user_type != models.UserType.ADMIN


def _requote(db: Session, booking: models.Booking) -> None:
    """Recompute the booking's quote with current rates and settings."""
    from ..crud import crud_service, crud_settings

    rate, offering = crud_service.resolve_service_rate(db, booking.service_id, booking.performer_id)
    quote = calculate_quote(
        rate,
        crud_settings.quote_settings_for(db, offering.performer),
        booking.duration_hours,
        booking.guest_count,
    )
    for field, value in quote.as_booking_fields().items():
        setattr(booking, field, value)


def _check_guard(
    db: Session,
    booking: models.Booking,
    target: BookingStatus,
    reason: Optional[str],
    now: datetime,
) -> None:
    if target == BookingStatus.QUOTE_SENT:
        # amounts are frozen once money has been received
        if booking.payment_status == BookingPaymentStatus.UNPAID:
            _requote(db, booking)
    elif target == BookingStatus.REJECTED:
        if not (reason and reason.strip()):
            raise MissingReason("A reason is required to reject a booking")
    elif target == BookingStatus.CONFIRMED:
        if booking.payment_status not in PAID_STATUSES:
            raise InvalidTransition("Booking cannot be confirmed before its deposit is verified")
    elif target == BookingStatus.IN_PROGRESS:
        if booking.event_date > now:
            raise InvalidTransition("Booking cannot start before its event time")


def _stamp(booking: models.Booking, target: BookingStatus, reason: Optional[str], now: datetime) -> None:
    if target == BookingStatus.QUOTE_SENT:
        booking.quoted_at = now
    elif target == BookingStatus.CONFIRMED:
        booking.confirmed_at = now
    elif target == BookingStatus.IN_PROGRESS:
        booking.started_at = now
    elif target == BookingStatus.COMPLETED:
        booking.completed_at = now
    elif target == BookingStatus.REJECTED:
        booking.rejection_reason = reason
    elif target == BookingStatus.CANCELLED:
        booking.cancelled_at = now
        booking.cancellation_reason = reason
        booking.cancellation_review_requested = False


def _flag_for_review(
    db: Session,
    booking: models.Booking,
    actor: models.User,
    reason: Optional[str],
    now: datetime,
) -> TransitionOutcome:
    from ..crud import crud_audit

    outcome = TransitionOutcome(
        booking=booking,
        from_status=booking.status,
        to_status=booking.status,
        reason=reason,
        flagged_for_review=True,
    )
    if booking.cancellation_review_requested:
        return outcome
    booking.cancellation_review_requested = True
    booking.cancellation_review_reason = reason
    booking.cancellation_requested_at = now
    crud_audit.record(
        db,
        entity_type="booking",
        entity_id=booking.id,
        action="cancellation_review_requested",
        actor_id=actor.id,
        from_state=booking.status.value,
        to_state=BookingStatus.CANCELLED.value,
        reason=reason,
    )
    db.flush()
    return outcome


def apply_transition(
    db: Session,
    booking: models.Booking,
    target: BookingStatus,
    *,
    actor: Optional[models.User],
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionOutcome:
    """Validate and stage a transition plus its audit entry without committing.

    ``actor`` is None for system-initiated moves. Raises before touching the
    booking when the move is not allowed.
    """
    from ..crud import crud_audit

    now = now or utcnow()
    current = booking.status
    assert_booking_transition(current, target)

    if target == BookingStatus.CANCELLED and _is_client_request(actor):
        window = timedelta(hours=settings.CLIENT_CANCELLATION_WINDOW_HOURS)
        if booking.event_date - now < window:
            return _flag_for_review(db, booking, actor, reason, now)

    _check_guard(db, booking, target, reason, now)

    booking.status = target
    _stamp(booking, target, reason, now)
    crud_audit.record(
        db,
        entity_type="booking",
        entity_id=booking.id,
        action="status_changed",
        actor_id=actor.id if actor is not None else None,
        from_state=current.value,
        to_state=target.value,
        reason=reason,
    )
    db.flush()
    return TransitionOutcome(booking=booking, from_status=current, to_status=target, reason=reason)


def announce(db: Session, outcome: TransitionOutcome) -> None:
    """Send the notifications for a committed transition; never raises."""
    booking = outcome.booking
    if outcome.flagged_for_review:
        notifications.best_effort(
            notifications.notify_cancellation_review,
            db,
            booking,
            outcome.reason,
            correlation_id=booking.reference,
        )
        return
    notifications.best_effort(
        notifications.notify_booking_status_changed,
        db,
        booking,
        outcome.from_status,
        outcome.reason,
        correlation_id=booking.reference,
    )


def transition_booking(
    db: Session,
    booking: models.Booking,
    target: BookingStatus,
    *,
    actor: Optional[models.User],
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionOutcome:
    """Move ``booking`` to ``target`` atomically with its audit entry.

    On any failure the transaction is rolled back and the stored booking is
    left as it was.
    """
    try:
        outcome = apply_transition(db, booking, target, actor=actor, reason=reason, now=now)
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent update on booking %s: %s", booking.id, exc)
        raise ConcurrentModification(
            "Booking was changed by someone else, please refresh and retry"
        ) from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    logger.info(
        "Booking %s (%s) %s -> %s by %s%s",
        booking.id,
        booking.reference,
        outcome.from_status.value,
        outcome.to_status.value,
        actor.id if actor is not None else "system",
        " [flagged for review]" if outcome.flagged_for_review else "",
    )
    announce(db, outcome)
    return outcome
