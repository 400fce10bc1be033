"""Outbound notifications for booking, payment and vetting events.

Each event creates an in-app notification row and hands email, SMS and
WhatsApp deliveries to the background worker. Nothing here is allowed to
fail the operation that triggered it: callers invoke these helpers after
their transaction has committed and wrap them with :func:`best_effort`.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from twilio.rest import Client

from .. import models
from ..core.config import settings
from ..models import NotificationType
from . import background_worker
from .email import send_email

logger = logging.getLogger(__name__)


class Channel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"


@dataclass(frozen=True)
class NotificationRequest:
    channel: Channel
    recipient: str
    template_key: str
    variables: dict[str, Any] = field(default_factory=dict)


# template_key -> (subject, body)
TEMPLATES: dict[str, tuple[str, str]] = {
    "booking_created": (
        "Booking {reference} received",
        "Hi {name}, we received booking {reference} for {event_date}. "
        "Total {total_amount}, deposit due {deposit_amount}. We'll send your quote shortly.",
    ),
    "booking_requested": (
        "New booking request {reference}",
        "Hi {name}, there is a new booking request {reference} for {event_date} at {venue}.",
    ),
    "booking_status_changed": (
        "Booking {reference} is now {status}",
        "Hi {name}, booking {reference} moved from {from_status} to {status}.{reason_text}",
    ),
    "cancellation_review": (
        "Cancellation review for {reference}",
        "Hi {name}, a late cancellation was requested for booking {reference} "
        "({event_date}). Reason: {reason}. It is waiting for admin review.",
    ),
    "payment_submitted": (
        "Payment received for {reference}",
        "Hi {name}, a payment of {amount} via {method} was submitted for booking "
        "{reference} and is pending verification.",
    ),
    "payment_verified": (
        "Payment verified for {reference}",
        "Hi {name}, the {kind} payment of {amount} for booking {reference} has been verified.",
    ),
    "payment_rejected": (
        "Payment for {reference} could not be verified",
        "Hi {name}, we could not verify your payment of {amount} for booking {reference}. "
        "{notes} Please upload a new receipt.",
    ),
    "payment_mismatch": (
        "Payment for {reference} needs review",
        "Hi {name}, the payment of {amount} for booking {reference} does not match the "
        "{expected_amount} due. It has been recorded and is pending review.",
    ),
    "vetting_submitted": (
        "Vetting application from {stage_name}",
        "Hi {name}, the vetting application for {stage_name} has been received and is pending review.",
    ),
    "vetting_approved": (
        "Welcome aboard, {stage_name}",
        "Hi {name}, your performer application has been approved. Your profile {stage_name} is now live.",
    ),
    "vetting_rejected": (
        "Your performer application",
        "Hi {name}, unfortunately your application was not approved. {notes}",
    ),
    "booking_reminder": (
        "Reminder: booking {reference} is coming up",
        "Hi {name}, booking {reference} starts at {event_date} at {venue}.",
    ),
    "balance_reminder": (
        "Balance due for {reference}",
        "Hi {name}, a balance of {balance} is due for booking {reference} before {event_date}.",
    ),
}


class _Blank(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(template_key: str, variables: dict[str, Any]) -> tuple[str, str]:
    subject, body = TEMPLATES[template_key]
    values = _Blank(variables)
    return subject.format_map(values), body.format_map(values)


def _channel_configured(channel: Channel) -> bool:
    if channel == Channel.EMAIL:
        return bool(settings.SMTP_HOST)
    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN):
        return False
    if channel == Channel.SMS:
        return bool(settings.TWILIO_FROM_NUMBER)
    return bool(settings.TWILIO_WHATSAPP_NUMBER)


def _send_sms(phone: str, body: str) -> None:
    Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN).messages.create(
        body=body, from_=settings.TWILIO_FROM_NUMBER, to=phone
    )


def _send_whatsapp(phone: str, body: str) -> None:
    Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN).messages.create(
        body=body,
        from_=f"whatsapp:{settings.TWILIO_WHATSAPP_NUMBER}",
        to=f"whatsapp:{phone}",
    )


def deliver(request: NotificationRequest) -> None:
    """Send one message now. Runs on the background worker."""
    subject, body = render(request.template_key, request.variables)
    if request.channel == Channel.EMAIL:
        send_email(request.recipient, subject, body)
    elif request.channel == Channel.SMS:
        _send_sms(request.recipient, body)
    else:
        _send_whatsapp(request.recipient, body)


def dispatch(request: NotificationRequest, correlation_id: Optional[str] = None) -> Optional[str]:
    """Queue ``request`` for delivery and return the task id.

    Returns None when the recipient is missing or the channel is not
    configured. Never raises.
    """
    if not request.recipient:
        return None
    if not _channel_configured(request.channel):
        logger.debug("Channel %s not configured; skipping %s", request.channel.value, request.template_key)
        return None
    try:
        return background_worker.enqueue(deliver, request, correlation_id=correlation_id)
    except Exception as exc:
        logger.warning(
            "Notification enqueue failed for %s [%s]: %s", request.template_key, correlation_id, exc
        )
        return None


def best_effort(func: Callable[..., Any], *args: Any, correlation_id: Optional[str] = None, **kwargs: Any) -> None:
    """Run a notification helper, logging instead of raising on failure."""
    try:
        func(*args, **kwargs)
    except Exception as exc:
        logger.warning("Notification %s failed [%s]: %s", func.__name__, correlation_id, exc)


def notify_user(
    db: Session,
    user: Optional[models.User],
    ntype: NotificationType,
    template_key: str,
    variables: dict[str, Any],
    link: str,
    correlation_id: Optional[str] = None,
    sms: bool = False,
) -> None:
    """Persist an in-app notification and queue outbound messages for ``user``."""
    if user is None:
        return
    variables = {"name": user.first_name, **variables}
    _, body = render(template_key, variables)
    from ..crud import crud_notification

    try:
        crud_notification.create_notification(db, user_id=user.id, type=ntype, message=body, link=link)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("In-app notification for user %s failed [%s]: %s", user.id, correlation_id, exc)

    dispatch(NotificationRequest(Channel.EMAIL, user.email, template_key, variables), correlation_id)
    if sms and user.phone_number:
        dispatch(NotificationRequest(Channel.SMS, user.phone_number, template_key, variables), correlation_id)
        dispatch(NotificationRequest(Channel.WHATSAPP, user.phone_number, template_key, variables), correlation_id)


def _admins(db: Session) -> Iterable[models.User]:
    from ..crud import crud_user

    return crud_user.user.get_admins(db)


def _money(value: Any) -> str:
    return f"{settings.DEFAULT_CURRENCY} {Decimal(str(value)):.2f}"


def _booking_vars(booking: models.Booking) -> dict[str, Any]:
    return {
        "reference": booking.reference,
        "event_date": booking.event_date.strftime("%Y-%m-%d %H:%M"),
        "venue": booking.venue_address,
        "total_amount": _money(booking.total_amount),
        "deposit_amount": _money(booking.deposit_amount),
        "status": booking.status.value,
    }


def _booking_link(booking: models.Booking) -> str:
    return f"/bookings/{booking.id}"


def _performer_user(booking: models.Booking) -> Optional[models.User]:
    return booking.performer.user if booking.performer is not None else None


def notify_booking_created(db: Session, booking: models.Booking) -> None:
    variables = _booking_vars(booking)
    link = _booking_link(booking)
    cid = booking.reference
    notify_user(db, booking.client, NotificationType.NEW_BOOKING, "booking_created", variables, link, cid, sms=True)
    notify_user(db, _performer_user(booking), NotificationType.NEW_BOOKING, "booking_requested", variables, link, cid, sms=True)
    for admin in _admins(db):
        notify_user(db, admin, NotificationType.NEW_BOOKING, "booking_requested", variables, f"/admin{link}", cid)


def notify_booking_status_changed(
    db: Session,
    booking: models.Booking,
    from_status: models.BookingStatus,
    reason: Optional[str] = None,
) -> None:
    variables = {
        **_booking_vars(booking),
        "from_status": from_status.value,
        "reason": reason or "",
        "reason_text": f" Reason: {reason}" if reason else "",
    }
    link = _booking_link(booking)
    for user in (booking.client, _performer_user(booking)):
        notify_user(
            db,
            user,
            NotificationType.BOOKING_STATUS_UPDATED,
            "booking_status_changed",
            variables,
            link,
            booking.reference,
            sms=True,
        )


def notify_cancellation_review(db: Session, booking: models.Booking, reason: Optional[str]) -> None:
    variables = {**_booking_vars(booking), "reason": reason or "not given"}
    link = _booking_link(booking)
    for admin in _admins(db):
        notify_user(db, admin, NotificationType.CANCELLATION_REVIEW, "cancellation_review", variables, f"/admin{link}", booking.reference)
    notify_user(db, booking.client, NotificationType.CANCELLATION_REVIEW, "cancellation_review", variables, link, booking.reference)


def _payment_vars(payment: models.Payment) -> dict[str, Any]:
    return {
        **_booking_vars(payment.booking),
        "amount": _money(payment.amount),
        "method": payment.method.value,
        "kind": payment.kind.value if payment.kind else "",
        "expected_amount": _money(payment.expected_amount) if payment.expected_amount is not None else "",
        "notes": payment.notes or "",
    }


def _payment_cid(payment: models.Payment) -> str:
    return f"{payment.booking.reference}/payment-{payment.id}"


def notify_payment_submitted(db: Session, payment: models.Payment) -> None:
    variables = _payment_vars(payment)
    link = _booking_link(payment.booking)
    cid = _payment_cid(payment)
    for admin in _admins(db):
        notify_user(db, admin, NotificationType.PAYMENT_SUBMITTED, "payment_submitted", variables, "/admin/payments", cid, sms=True)
    notify_user(db, payment.booking.client, NotificationType.PAYMENT_SUBMITTED, "payment_submitted", variables, link, cid)


def notify_payment_verified(db: Session, payment: models.Payment) -> None:
    variables = _payment_vars(payment)
    link = _booking_link(payment.booking)
    cid = _payment_cid(payment)
    notify_user(db, payment.booking.client, NotificationType.PAYMENT_VERIFIED, "payment_verified", variables, link, cid, sms=True)
    notify_user(db, _performer_user(payment.booking), NotificationType.PAYMENT_VERIFIED, "payment_verified", variables, link, cid)


def notify_payment_rejected(db: Session, payment: models.Payment) -> None:
    notify_user(
        db,
        payment.booking.client,
        NotificationType.PAYMENT_REJECTED,
        "payment_rejected",
        _payment_vars(payment),
        _booking_link(payment.booking),
        _payment_cid(payment),
        sms=True,
    )


def notify_payment_mismatch(db: Session, payment: models.Payment) -> None:
    variables = _payment_vars(payment)
    cid = _payment_cid(payment)
    for admin in _admins(db):
        notify_user(db, admin, NotificationType.PAYMENT_MISMATCH, "payment_mismatch", variables, "/admin/payments", cid)
    notify_user(db, payment.booking.client, NotificationType.PAYMENT_MISMATCH, "payment_mismatch", variables, _booking_link(payment.booking), cid)


def notify_vetting_submitted(db: Session, application: models.VettingApplication) -> None:
    variables = {"stage_name": application.stage_name}
    cid = f"vetting-{application.id}"
    for admin in _admins(db):
        notify_user(db, admin, NotificationType.VETTING_UPDATE, "vetting_submitted", variables, "/admin/vetting", cid)
    notify_user(db, application.applicant, NotificationType.VETTING_UPDATE, "vetting_submitted", variables, "/vetting", cid)


def notify_vetting_decision(db: Session, application: models.VettingApplication) -> None:
    template = (
        "vetting_approved"
        if application.status == models.VettingStatus.APPROVED
        else "vetting_rejected"
    )
    notify_user(
        db,
        application.applicant,
        NotificationType.VETTING_UPDATE,
        template,
        {"stage_name": application.stage_name, "notes": application.review_notes or ""},
        "/vetting",
        f"vetting-{application.id}",
        sms=True,
    )


def send_booking_reminder(db: Session, booking: models.Booking) -> None:
    variables = _booking_vars(booking)
    link = _booking_link(booking)
    for user in (booking.client, _performer_user(booking)):
        notify_user(db, user, NotificationType.REMINDER, "booking_reminder", variables, link, booking.reference, sms=True)


def send_balance_reminder(db: Session, booking: models.Booking, balance: Decimal) -> None:
    notify_user(
        db,
        booking.client,
        NotificationType.REMINDER,
        "balance_reminder",
        {**_booking_vars(booking), "balance": _money(balance)},
        _booking_link(booking),
        booking.reference,
        sms=True,
    )
