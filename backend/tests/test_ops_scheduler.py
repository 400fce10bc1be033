from datetime import datetime, timedelta
from decimal import Decimal

from freezegun import freeze_time

from booking_core import models
from booking_core.crud import crud_audit
from booking_core.models import BookingPaymentStatus, BookingStatus, NotificationType, PaymentMethod
from booking_core.services import ops_scheduler

NOW = datetime(2031, 5, 1, 12, 0)


def _reminders(db, user_id):
    return (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.type == NotificationType.REMINDER,
        )
        .count()
    )


def test_stale_quotes_are_cancelled(market):
    stale = market.booking(status=BookingStatus.QUOTE_SENT, now=NOW - timedelta(hours=72))
    fresh = market.booking(status=BookingStatus.QUOTE_SENT, now=NOW - timedelta(hours=2))

    summary = ops_scheduler.cancel_stale_quotes(market.db, NOW)

    assert summary == {"quotes_expired": 1}
    assert stale.status == BookingStatus.CANCELLED
    assert stale.cancelled_at == NOW
    assert "48 hours" in stale.cancellation_reason
    assert fresh.status == BookingStatus.QUOTE_SENT
    entry = crud_audit.list_for_entity(market.db, "booking", stale.id)[-1]
    assert entry.actor_id is None


def test_quote_with_pending_receipt_is_kept(market):
    booking = market.booking(status=BookingStatus.QUOTE_SENT, now=NOW - timedelta(hours=72))
    market.db.add(
        models.Payment(
            booking_id=booking.id,
            amount=Decimal("165.00"),
            method=PaymentMethod.BANK_TRANSFER,
            payer_name="Cleo Test",
            receipt_ref="BT-1",
        )
    )
    market.db.commit()

    assert ops_scheduler.cancel_stale_quotes(market.db, NOW) == {"quotes_expired": 0}
    assert booking.status == BookingStatus.QUOTE_SENT


def test_due_bookings_are_started(market):
    due = market.booking(
        status=BookingStatus.CONFIRMED,
        payment_status=BookingPaymentStatus.DEPOSIT_PAID,
        now=NOW - timedelta(minutes=30),
        event_in=timedelta(0),
    )
    later = market.booking(
        status=BookingStatus.CONFIRMED,
        payment_status=BookingPaymentStatus.DEPOSIT_PAID,
        now=NOW,
        event_in=timedelta(days=1),
    )

    assert ops_scheduler.start_due_bookings(market.db, NOW) == {"bookings_started": 1}
    assert due.status == BookingStatus.IN_PROGRESS
    assert due.started_at == NOW
    assert later.status == BookingStatus.CONFIRMED


def test_booking_reminders_are_sent_once(market):
    booking = market.booking(
        status=BookingStatus.CONFIRMED,
        payment_status=BookingPaymentStatus.DEPOSIT_PAID,
        now=NOW,
        event_in=timedelta(hours=20),
    )
    market.booking(
        status=BookingStatus.CONFIRMED,
        payment_status=BookingPaymentStatus.DEPOSIT_PAID,
        now=NOW,
        event_in=timedelta(days=3),
    )

    assert ops_scheduler.send_booking_reminders(market.db, NOW) == {"booking_reminders": 1}
    assert booking.reminder_sent_at == NOW
    assert _reminders(market.db, market.client.id) == 1
    assert _reminders(market.db, market.performer_user.id) == 1

    assert ops_scheduler.send_booking_reminders(market.db, NOW) == {"booking_reminders": 0}
    assert _reminders(market.db, market.client.id) == 1


def test_balance_reminder_only_for_deposit_paid(market, enqueued):
    owing = market.booking(
        status=BookingStatus.CONFIRMED,
        payment_status=BookingPaymentStatus.DEPOSIT_PAID,
        now=NOW,
        event_in=timedelta(days=3),
    )
    market.booking(
        status=BookingStatus.CONFIRMED,
        payment_status=BookingPaymentStatus.FULLY_PAID,
        now=NOW,
        event_in=timedelta(days=3),
    )
    market.booking(
        status=BookingStatus.CONFIRMED,
        payment_status=BookingPaymentStatus.DEPOSIT_PAID,
        now=NOW,
        event_in=timedelta(days=9),
    )

    assert ops_scheduler.send_balance_reminders(market.db, NOW) == {"balance_reminders": 1}
    assert owing.balance_reminder_sent_at == NOW
    emails = [
        args[0]
        for func, args, kwargs in enqueued
        if args[0].template_key == "balance_reminder" and args[0].channel == "email"
    ]
    assert [r.recipient for r in emails] == [market.client.email]
    # nothing has been applied yet, so the whole total is still owed
    assert emails[0].variables["balance"] == "AUD 330.00"


def test_read_notifications_are_cleaned_up(market):
    db = market.db
    with freeze_time(NOW - timedelta(days=45)):
        old_read = models.Notification(
            user_id=market.client.id, type=NotificationType.REMINDER, message="old", link="/", is_read=True
        )
        old_unread = models.Notification(
            user_id=market.client.id, type=NotificationType.REMINDER, message="keep", link="/", is_read=False
        )
        db.add_all([old_read, old_unread])
        db.commit()

    assert ops_scheduler.cleanup_old_notifications(db, NOW) == {"notifications_deleted": 1}
    assert [n.message for n in db.query(models.Notification).all()] == ["keep"]


def test_run_maintenance_reports_every_job(market):
    market.booking(status=BookingStatus.QUOTE_SENT, now=NOW - timedelta(hours=72))

    summary = ops_scheduler.run_maintenance(market.db, now=NOW)

    assert summary == {
        "quotes_expired": 1,
        "bookings_started": 0,
        "booking_reminders": 0,
        "balance_reminders": 0,
        "notifications_deleted": 0,
    }


def test_refused_transition_is_skipped(market):
    booking = market.booking(status=BookingStatus.QUOTE_SENT, now=NOW)

    moved = ops_scheduler._system_transition(
        market.db, booking, BookingStatus.IN_PROGRESS, "Event start time reached", NOW
    )

    assert moved is False
    assert booking.status == BookingStatus.QUOTE_SENT
