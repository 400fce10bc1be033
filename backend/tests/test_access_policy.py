import pytest

from booking_core import models
from booking_core.models import BookingStatus, UserType
from booking_core.services.access_policy import (
    Action,
    Relation,
    action_for_transition,
    allowed_actions,
    can,
    relation_to,
    require,
)
from booking_core.utils.errors import NotAuthorized


def _user(user_id, user_type=UserType.CLIENT, active=True):
    return models.User(id=user_id, email=f"u{user_id}@test.com", user_type=user_type, is_active=active)


@pytest.fixture
def people():
    client = _user(1)
    performer_user = _user(2, UserType.PERFORMER)
    stranger = _user(3)
    admin = _user(4, UserType.ADMIN)
    booking = models.Booking(id=10, client_id=client.id, status=BookingStatus.PENDING)
    booking.performer = models.PerformerProfile(id=20, user_id=performer_user.id, stage_name="DJ")
    return client, performer_user, stranger, admin, booking


def test_relations(people):
    client, performer_user, stranger, admin, booking = people
    assert relation_to(client, booking) == Relation.OWNER
    assert relation_to(performer_user, booking) == Relation.PERFORMER
    assert relation_to(stranger, booking) == Relation.NONE
    assert relation_to(admin, booking) == Relation.ADMIN
    assert relation_to(client) == Relation.NONE


def test_client_owns_their_booking(people):
    client, _, _, _, booking = people
    assert can(client, Action.VIEW_BOOKING, booking)
    assert can(client, Action.CANCEL_BOOKING, booking)
    assert can(client, Action.SUBMIT_PAYMENT, booking)
    assert not can(client, Action.MANAGE_BOOKING, booking)
    assert not can(client, Action.VERIFY_PAYMENT, booking)


def test_performer_can_only_look(people):
    _, performer_user, _, _, booking = people
    assert allowed_actions(performer_user, booking) == {Action.VIEW_BOOKING, Action.VIEW_PAYMENTS}
    with pytest.raises(NotAuthorized):
        require(performer_user, Action.CANCEL_BOOKING, booking)


def test_stranger_has_no_access(people):
    _, _, stranger, _, booking = people
    with pytest.raises(NotAuthorized) as exc:
        require(stranger, Action.VIEW_BOOKING, booking)
    assert exc.value.http_status == 403
    assert exc.value.code == "not_authorized"
    assert "view booking" in exc.value.message


def test_admin_may_do_everything(people):
    *_, admin, booking = people
    for action in Action:
        assert can(admin, action, booking)
    assert can(admin, Action.REVIEW_VETTING)


def test_inactive_user_loses_all_access(people):
    client, *_, booking = people
    client.is_active = False
    assert allowed_actions(client, booking) == frozenset()


@pytest.mark.parametrize(
    "target, action",
    [
        (BookingStatus.CANCELLED, Action.CANCEL_BOOKING),
        (BookingStatus.QUOTE_SENT, Action.MANAGE_BOOKING),
        (BookingStatus.CONFIRMED, Action.MANAGE_BOOKING),
        (BookingStatus.REJECTED, Action.MANAGE_BOOKING),
    ],
)
def test_transition_actions(target, action):
    assert action_for_transition(target) == action
