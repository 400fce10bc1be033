from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..crud import crud_notification, crud_payment
from ..database import get_db_session
from ..models.base import utcnow
from ..models.booking_status import BookingPaymentStatus, BookingStatus
from ..utils import notifications
from ..utils.errors import BookingCoreError
from .booking_state import transition_booking
from .quote_calculator import balance_due

logger = logging.getLogger(__name__)

BALANCE_REMINDER_MIN_DAYS = 2
BALANCE_REMINDER_MAX_DAYS = 4


def _system_transition(
    db: Session,
    booking: models.Booking,
    target: BookingStatus,
    reason: str,
    now: datetime,
) -> bool:
    try:
        transition_booking(db, booking, target, actor=None, reason=reason, now=now)
        return True
    except BookingCoreError as exc:
        logger.warning(
            "Scheduled move of booking %s to %s skipped: %s", booking.id, target.value, exc
        )
        return False


def cancel_stale_quotes(db: Session, now: datetime) -> dict:
    """Cancel unpaid quotes the client never acted on."""
    cutoff = now - timedelta(hours=settings.QUOTE_RESPONSE_HOURS)
    rows = (
        db.query(models.Booking)
        .filter(
            models.Booking.status == BookingStatus.QUOTE_SENT,
            models.Booking.payment_status == BookingPaymentStatus.UNPAID,
            models.Booking.quoted_at != None,  # noqa: E711
            models.Booking.quoted_at <= cutoff,
        )
        .all()
    )
    expired = 0
    for booking in rows:
        # a receipt waiting for verification keeps the quote alive
        if crud_payment.get_pending_for_booking(db, booking.id) is not None:
            continue
        reason = f"Quote not paid within {settings.QUOTE_RESPONSE_HOURS} hours"
        if _system_transition(db, booking, BookingStatus.CANCELLED, reason, now):
            expired += 1
    return {"quotes_expired": expired}


def start_due_bookings(db: Session, now: datetime) -> dict:
    rows = (
        db.query(models.Booking)
        .filter(
            models.Booking.status == BookingStatus.CONFIRMED,
            models.Booking.event_date <= now,
        )
        .all()
    )
    started = 0
    for booking in rows:
        if _system_transition(db, booking, BookingStatus.IN_PROGRESS, "Event start time reached", now):
            started += 1
    return {"bookings_started": started}


def send_booking_reminders(db: Session, now: datetime) -> dict:
    horizon = now + timedelta(hours=settings.REMINDER_LEAD_HOURS)
    rows = (
        db.query(models.Booking)
        .filter(
            models.Booking.status == BookingStatus.CONFIRMED,
            models.Booking.event_date > now,
            models.Booking.event_date <= horizon,
            models.Booking.reminder_sent_at == None,  # noqa: E711
        )
        .all()
    )
    for booking in rows:
        notifications.best_effort(
            notifications.send_booking_reminder, db, booking, correlation_id=booking.reference
        )
        booking.reminder_sent_at = now
    if rows:
        db.commit()
    return {"booking_reminders": len(rows)}


def send_balance_reminders(db: Session, now: datetime) -> dict:
    """Remind clients who paid a deposit that the balance is due soon."""
    rows = (
        db.query(models.Booking)
        .filter(
            models.Booking.status == BookingStatus.CONFIRMED,
            models.Booking.payment_status == BookingPaymentStatus.DEPOSIT_PAID,
            models.Booking.event_date >= now + timedelta(days=BALANCE_REMINDER_MIN_DAYS),
            models.Booking.event_date <= now + timedelta(days=BALANCE_REMINDER_MAX_DAYS),
            models.Booking.balance_reminder_sent_at == None,  # noqa: E711
        )
        .all()
    )
    sent = 0
    for booking in rows:
        balance = balance_due(booking.total_amount, crud_payment.applied_total(db, booking.id))
        if balance <= 0:
            continue
        notifications.best_effort(
            notifications.send_balance_reminder,
            db,
            booking,
            balance,
            correlation_id=booking.reference,
        )
        booking.balance_reminder_sent_at = now
        sent += 1
    if sent:
        db.commit()
    return {"balance_reminders": sent}


def cleanup_old_notifications(db: Session, now: datetime) -> dict:
    cutoff = now - timedelta(days=settings.NOTIFICATION_RETENTION_DAYS)
    return {"notifications_deleted": crud_notification.delete_read_before(db, cutoff)}


JOBS: tuple[Callable[[Session, datetime], dict], ...] = (
    cancel_stale_quotes,
    start_due_bookings,
    send_booking_reminders,
    send_balance_reminders,
    cleanup_old_notifications,
)


def run_maintenance(db: Optional[Session] = None, now: Optional[datetime] = None) -> dict:
    """Run all maintenance jobs once and return a summary.

    Without ``db`` each job gets its own short-lived session so no
    connection is held for the whole cycle.
    """
    now = now or utcnow()
    summary: dict = {}
    for job in JOBS:
        if db is not None:
            summary.update(job(db, now))
            continue
        with get_db_session() as session:
            summary.update(job(session, now))
    logger.info("Maintenance run complete: %s", summary)
    return summary
