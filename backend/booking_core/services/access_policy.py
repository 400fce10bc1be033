"""Who may do what to a booking.

The rules are a plain table of ``(relationship to the booking) -> actions``
so they can be read and unit-tested without a database or HTTP layer.
"""

from __future__ import annotations

import enum
from typing import Optional

from .. import models
from ..models.booking_status import BookingStatus
from ..utils.errors import NotAuthorized


class Action(str, enum.Enum):
    VIEW_BOOKING = "view_booking"
    EDIT_BOOKING = "edit_booking"
    CANCEL_BOOKING = "cancel_booking"
    MANAGE_BOOKING = "manage_booking"
    VIEW_PAYMENTS = "view_payments"
    SUBMIT_PAYMENT = "submit_payment"
    VERIFY_PAYMENT = "verify_payment"
    REVIEW_VETTING = "review_vetting"
    MANAGE_SETTINGS = "manage_settings"
    VIEW_AUDIT = "view_audit"


class Relation(str, enum.Enum):
    ADMIN = "admin"
    OWNER = "owner"
    PERFORMER = "performer"
    NONE = "none"


POLICY: dict[Relation, frozenset[Action]] = {
    Relation.ADMIN: frozenset(Action),
    Relation.OWNER: frozenset(
        {
            Action.VIEW_BOOKING,
            Action.EDIT_BOOKING,
            Action.CANCEL_BOOKING,
            Action.VIEW_PAYMENTS,
            Action.SUBMIT_PAYMENT,
        }
    ),
    Relation.PERFORMER: frozenset({Action.VIEW_BOOKING, Action.VIEW_PAYMENTS}),
    Relation.NONE: frozenset(),
}


def relation_to(user: models.User, booking: Optional[models.Booking] = None) -> Relation:
    if user.user_type == models.UserType.ADMIN:
        return Relation.ADMIN
    if booking is None:
        return Relation.NONE
    if booking.client_id == user.id:
        return Relation.OWNER
    performer = booking.performer
    if performer is not None and performer.user_id == user.id:
        return Relation.PERFORMER
    return Relation.NONE


def allowed_actions(user: models.User, booking: Optional[models.Booking] = None) -> frozenset[Action]:
    if not user.is_active:
        return frozenset()
    return POLICY[relation_to(user, booking)]


def can(user: models.User, action: Action, booking: Optional[models.Booking] = None) -> bool:
    return action in allowed_actions(user, booking)


def require(user: models.User, action: Action, booking: Optional[models.Booking] = None) -> None:
    """Raise :class:`NotAuthorized` unless ``user`` may perform ``action``."""
    if not can(user, action, booking):
        raise NotAuthorized(f"Not allowed to {action.value.replace('_', ' ')}")


def action_for_transition(target: BookingStatus) -> Action:
    """Cancelling is open to the booking's client; every other move is admin work."""
    if target == BookingStatus.CANCELLED:
        return Action.CANCEL_BOOKING
    return Action.MANAGE_BOOKING
