from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from booking_core import models
from booking_core.api.auth import create_access_token
from booking_core.core.config import settings
from booking_core.database import get_db
from booking_core.main import app
from booking_core.models import BookingPaymentStatus, BookingStatus, UserType

from conftest import build_market, create_user, setup_engine


@pytest.fixture
def api(tmp_path):
    engine = setup_engine(f"sqlite:///{tmp_path / 'api.db'}")
    Session = sessionmaker(bind=engine)

    def override_get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    db = Session()
    market = build_market(db)
    try:
        with TestClient(app) as client:
            yield client, market
    finally:
        app.dependency_overrides.clear()
        db.close()
        engine.dispose()


def _auth(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


def _new_booking(client, market):
    res = client.post(
        "/api/v1/bookings/",
        json={
            "performer_id": market.performer.id,
            "service_id": market.service.id,
            "event_date": (datetime.utcnow() + timedelta(days=10)).isoformat(),
            "duration_hours": "2",
            "venue_address": "1 Harbour Street, Sydney NSW",
            "event_type": "birthday",
        },
        headers=_auth(market.client),
    )
    assert res.status_code == 201, res.text
    return res.json()


def test_register_login_and_me(api):
    client, _ = api
    res = client.post(
        "/auth/register",
        json={
            "email": "New.Person@Test.com",
            "first_name": "New",
            "last_name": "Person",
            "password": "supersecret",
        },
    )
    assert res.status_code == 201
    assert res.json()["user_type"] == "client"
    assert res.json()["email"] == "new.person@test.com"

    dup = client.post(
        "/auth/register",
        json={"email": "new.person@test.com", "first_name": "A", "last_name": "B", "password": "supersecret"},
    )
    assert dup.status_code == 409

    bad = client.post("/auth/login", data={"username": "new.person@test.com", "password": "wrong-pass"})
    assert bad.status_code == 401

    login = client.post("/auth/login", data={"username": "new.person@test.com", "password": "supersecret"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["first_name"] == "New"


def test_quote_preview_is_public(api):
    client, market = api
    res = client.post(
        "/api/v1/quotes/preview",
        json={"service_id": market.service.id, "performer_id": market.performer.id, "duration_hours": "2"},
    )
    assert res.status_code == 200
    body = res.json()
    assert Decimal(str(body["total_amount"])) == Decimal("330.00")
    assert Decimal(str(body["deposit_amount"])) == Decimal("165.00")
    assert body["currency"] == "AUD"


def test_quote_preview_reports_bad_duration(api):
    client, market = api
    res = client.post(
        "/api/v1/quotes/preview",
        json={"service_id": market.service.id, "performer_id": market.performer.id, "duration_hours": "0"},
    )
    assert res.status_code == 422
    assert res.json()["detail"]["code"] == "invalid_duration"
    assert res.json()["detail"]["field_errors"] == {"duration_hours": "invalid_duration"}


def test_client_creates_booking(api):
    client, market = api
    booking = _new_booking(client, market)
    assert booking["status"] == "pending"
    assert booking["payment_status"] == "unpaid"
    assert booking["reference"].startswith("FE-")
    assert Decimal(str(booking["total_amount"])) == Decimal("330.00")

    mine = client.get("/api/v1/bookings/my", headers=_auth(market.client))
    assert [b["id"] for b in mine.json()] == [booking["id"]]
    # the performer sees it too
    theirs = client.get("/api/v1/bookings/my", headers=_auth(market.performer_user))
    assert [b["id"] for b in theirs.json()] == [booking["id"]]


def test_booking_requires_login(api):
    client, market = api
    res = client.get("/api/v1/bookings/my")
    assert res.status_code == 401


def test_request_validation_errors_are_structured(api):
    client, market = api
    res = client.post(
        "/api/v1/bookings/",
        json={
            "performer_id": market.performer.id,
            "service_id": market.service.id,
            "event_date": (datetime.utcnow() + timedelta(days=10)).isoformat(),
            "duration_hours": "2",
            "venue_address": "short",
        },
        headers=_auth(market.client),
    )
    assert res.status_code == 422
    detail = res.json()["detail"]
    assert detail["code"] == "validation_error"
    assert "venue_address" in detail["field_errors"]


def test_stranger_cannot_view_booking(api):
    client, market = api
    booking = _new_booking(client, market)
    stranger = create_user(market.db, UserType.CLIENT)

    res = client.get(f"/api/v1/bookings/{booking['id']}", headers=_auth(stranger))

    assert res.status_code == 403
    assert res.json()["detail"]["code"] == "not_authorized"


def test_missing_booking_is_404(api):
    client, market = api
    res = client.get("/api/v1/bookings/9999", headers=_auth(market.admin))
    assert res.status_code == 404
    assert res.json()["detail"]["field_errors"] == {"booking_id": "not_found"}


def test_quote_payment_and_confirmation_flow(api):
    client, market = api
    booking = _new_booking(client, market)
    booking_id = booking["id"]

    # only an admin may send the quote
    res = client.post(
        f"/api/v1/bookings/{booking_id}/status",
        json={"status": "quote_sent"},
        headers=_auth(market.client),
    )
    assert res.status_code == 403

    res = client.post(
        f"/api/v1/bookings/{booking_id}/status",
        json={"status": "quote_sent"},
        headers=_auth(market.admin),
    )
    assert res.status_code == 200
    assert res.json()["new_status"] == "quote_sent"

    payment_in = {"amount": "165.00", "method": "payid", "receipt_ref": "PAYID-777", "payer_name": "Cleo Test"}
    res = client.post(f"/api/v1/bookings/{booking_id}/payments", json=payment_in, headers=_auth(market.client))
    assert res.status_code == 201
    payment = res.json()
    assert payment["status"] == "pending_verification"
    assert payment["kind"] == "deposit"

    dup = client.post(f"/api/v1/bookings/{booking_id}/payments", json=payment_in, headers=_auth(market.client))
    assert dup.status_code == 409
    assert dup.json()["detail"]["code"] == "duplicate_pending_payment"

    denied = client.post(
        f"/api/v1/payments/{payment['id']}/verify",
        json={"outcome": "verified"},
        headers=_auth(market.client),
    )
    assert denied.status_code == 403

    res = client.post(
        f"/api/v1/payments/{payment['id']}/verify",
        json={"outcome": "verified"},
        headers=_auth(market.admin),
    )
    assert res.status_code == 200
    decision = res.json()
    assert decision["payment_status"] == "verified"
    assert decision["booking_status"] == "confirmed"
    assert decision["booking_payment_status"] == "deposit_paid"
    assert decision["amount_mismatch"] is False

    trail = client.get(f"/api/v1/audit/booking/{booking_id}", headers=_auth(market.admin))
    assert [e["action"] for e in trail.json()] == [
        "booking_created",
        "status_changed",
        "payment_applied",
        "status_changed",
    ]


def test_invalid_transition_is_conflict(api):
    client, market = api
    booking = _new_booking(client, market)
    res = client.post(
        f"/api/v1/bookings/{booking['id']}/status",
        json={"status": "completed"},
        headers=_auth(market.admin),
    )
    assert res.status_code == 409
    detail = res.json()["detail"]
    assert detail["code"] == "invalid_transition"
    assert detail["field_errors"] == {"status": "invalid_transition"}


def test_client_can_cancel_own_booking(api):
    client, market = api
    booking = _new_booking(client, market)
    res = client.post(
        f"/api/v1/bookings/{booking['id']}/status",
        json={"status": "cancelled", "reason": "Venue fell through"},
        headers=_auth(market.client),
    )
    assert res.status_code == 200
    assert res.json()["new_status"] == "cancelled"
    assert res.json()["flagged_for_review"] is False


def test_blocked_client_cannot_book(api):
    client, market = api
    res = client.post(
        "/api/v1/admin/do-not-serve",
        json={"client_id": market.client.id, "reason": "Repeated no-shows"},
        headers=_auth(market.admin),
    )
    assert res.status_code == 201

    blocked = client.post(
        "/api/v1/bookings/",
        json={
            "performer_id": market.performer.id,
            "service_id": market.service.id,
            "event_date": (datetime.utcnow() + timedelta(days=10)).isoformat(),
            "duration_hours": "2",
            "venue_address": "1 Harbour Street, Sydney NSW",
        },
        headers=_auth(market.client),
    )
    assert blocked.status_code == 403
    assert blocked.json()["detail"]["code"] == "client_blocked"


def test_vetting_over_http(api):
    client, market = api
    hopeful = create_user(market.db, UserType.CLIENT, first_name="Hope")
    res = client.post(
        "/api/v1/vetting/applications",
        json={
            "full_name": "Hope Test",
            "stage_name": "Hope the Magician",
            "email": hopeful.email,
            "phone": "0433333333",
        },
        headers=_auth(hopeful),
    )
    assert res.status_code == 201
    application_id = res.json()["id"]

    queue = client.get("/api/v1/admin/queues/vetting", headers=_auth(market.admin))
    assert [a["id"] for a in queue.json()] == [application_id]

    res = client.post(
        f"/api/v1/vetting/applications/{application_id}/review",
        json={"decision": "approved"},
        headers=_auth(market.admin),
    )
    assert res.status_code == 200
    assert res.json()["application"]["status"] == "approved"
    assert res.json()["performer"]["stage_name"] == "Hope the Magician"

    market.db.expire_all()
    assert market.db.get(models.User, hopeful.id).user_type == UserType.PERFORMER


def test_notifications_are_private(api):
    client, market = api
    _new_booking(client, market)

    mine = client.get("/api/v1/notifications", headers=_auth(market.client))
    assert mine.status_code == 200
    assert len(mine.json()) == 1
    note_id = mine.json()[0]["id"]

    other = client.post(f"/api/v1/notifications/{note_id}/read", headers=_auth(market.performer_user))
    assert other.status_code == 404

    read = client.post(f"/api/v1/notifications/{note_id}/read", headers=_auth(market.client))
    assert read.json()["is_read"] is True
    unread = client.get("/api/v1/notifications?unread_only=true", headers=_auth(market.client))
    assert unread.json() == []


def test_scheduler_tick_requires_cron_secret(api, monkeypatch):
    client, market = api
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    market.booking(status=BookingStatus.QUOTE_SENT, now=datetime.utcnow() - timedelta(hours=72))

    assert client.post("/ops/scheduler/tick").status_code == 403
    assert client.post("/ops/scheduler/tick", headers={"X-Cron-Secret": "nope"}).status_code == 403

    res = client.post("/ops/scheduler/tick", headers={"X-Cron-Secret": "s3cret"})
    assert res.status_code == 202
    body = res.json()
    assert body["status"] == "ok"
    assert body["quotes_expired"] == 1


def test_healthz(api):
    client, _ = api
    res = client.get("/healthz")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_client_edits_booking_before_confirmation(api):
    client, market = api
    booking = _new_booking(client, market)

    res = client.patch(
        f"/api/v1/bookings/{booking['id']}",
        json={"duration_hours": "3", "guest_count": 40},
        headers=_auth(market.client),
    )
    assert res.status_code == 200, res.text
    assert Decimal(str(res.json()["total_amount"])) == Decimal("495.00")
    assert res.json()["guest_count"] == 40

    # the performer may look but not edit
    denied = client.patch(
        f"/api/v1/bookings/{booking['id']}",
        json={"duration_hours": "1"},
        headers=_auth(market.performer_user),
    )
    assert denied.status_code == 403

    too_soon = client.patch(
        f"/api/v1/bookings/{booking['id']}",
        json={"event_date": (datetime.utcnow() + timedelta(hours=2)).isoformat()},
        headers=_auth(market.client),
    )
    assert too_soon.status_code == 422
    assert too_soon.json()["detail"]["code"] == "invalid_event_date"


def test_confirmed_booking_cannot_be_edited_over_http(api):
    client, market = api
    booking = market.booking(
        status=BookingStatus.CONFIRMED, payment_status=BookingPaymentStatus.DEPOSIT_PAID
    )
    res = client.patch(
        f"/api/v1/bookings/{booking.id}",
        json={"duration_hours": "3"},
        headers=_auth(market.client),
    )
    assert res.status_code == 409
    assert res.json()["detail"]["code"] == "invalid_transition"


def test_service_catalogue(api):
    client, market = api
    payload = {
        "name": "Balloon Twisting",
        "category": "kids",
        "rate_type": "flat_rate",
        "base_rate": "220.00",
    }

    assert client.post("/api/v1/services/", json=payload, headers=_auth(market.client)).status_code == 403
    res = client.post("/api/v1/services/", json=payload, headers=_auth(market.admin))
    assert res.status_code == 201
    created = res.json()
    assert created["is_active"] is True

    listed = client.get("/api/v1/services/")
    assert {s["name"] for s in listed.json()} == {"DJ Set", "Balloon Twisting"}
    kids = client.get("/api/v1/services/?category=KIDS")
    assert [s["id"] for s in kids.json()] == [created["id"]]

    res = client.put(
        f"/api/v1/services/{created['id']}",
        json={"is_active": False},
        headers=_auth(market.admin),
    )
    assert res.status_code == 200
    assert res.json()["is_active"] is False
    assert [s["name"] for s in client.get("/api/v1/services/").json()] == ["DJ Set"]
    assert client.get(f"/api/v1/services/{created['id']}").status_code == 404

    trail = client.get(f"/api/v1/audit/service/{created['id']}", headers=_auth(market.admin))
    assert [e["action"] for e in trail.json()] == ["service_created", "service_updated"]


def test_service_rate_must_be_positive(api):
    client, market = api
    res = client.post(
        "/api/v1/services/",
        json={"name": "Free Hugs", "base_rate": "0"},
        headers=_auth(market.admin),
    )
    assert res.status_code == 422
    assert "base_rate" in res.json()["detail"]["field_errors"]


def test_performer_directory_and_detail(api):
    client, market = api
    market.db.query(models.PerformerProfile).filter_by(id=market.performer.id).update(
        {"location": "Sydney"}
    )
    market.db.commit()

    res = client.get("/api/v1/performers/")
    assert res.status_code == 200
    [listed] = res.json()
    assert listed["stage_name"] == "DJ Test"
    assert [o["service_id"] for o in listed["offerings"]] == [market.service.id]
    assert Decimal(str(listed["offerings"][0]["effective_rate"])) == Decimal("150.00")

    assert client.get("/api/v1/performers/?location=melbourne").json() == []
    assert len(client.get(f"/api/v1/performers/?service_id={market.service.id}").json()) == 1

    detail = client.get(f"/api/v1/performers/{market.performer.id}")
    assert detail.status_code == 200
    assert detail.json()["location"] == "Sydney"

    missing = client.get("/api/v1/performers/9999")
    assert missing.status_code == 404
    assert missing.json()["detail"]["field_errors"] == {"performer_id": "not_found"}


def test_performer_sets_custom_rate_for_quotes(api):
    client, market = api
    res = client.put(
        f"/api/v1/performers/me/services/{market.service.id}",
        json={"custom_rate": "200.00"},
        headers=_auth(market.performer_user),
    )
    assert res.status_code == 200, res.text
    assert Decimal(str(res.json()["effective_rate"])) == Decimal("200.00")

    quote = client.post(
        "/api/v1/quotes/preview",
        json={"service_id": market.service.id, "performer_id": market.performer.id, "duration_hours": "2"},
    )
    assert Decimal(str(quote.json()["total_amount"])) == Decimal("440.00")

    # clients have no performer profile
    denied = client.put(
        f"/api/v1/performers/me/services/{market.service.id}",
        json={"custom_rate": "1.00"},
        headers=_auth(market.client),
    )
    assert denied.status_code == 403


def test_newly_approved_performer_can_offer_a_service(api):
    client, market = api
    hopeful = create_user(market.db, UserType.CLIENT, first_name="Hope")
    res = client.post(
        "/api/v1/vetting/applications",
        json={"full_name": "Hope Test", "stage_name": "Hope Sings", "email": hopeful.email, "phone": "0433333333"},
        headers=_auth(hopeful),
    )
    client.post(
        f"/api/v1/vetting/applications/{res.json()['id']}/review",
        json={"decision": "approved"},
        headers=_auth(market.admin),
    )
    performer_id = client.get("/api/v1/performers/me", headers=_auth(hopeful)).json()["id"]

    quote_in = {"service_id": market.service.id, "performer_id": performer_id, "duration_hours": "2"}
    assert client.post("/api/v1/quotes/preview", json=quote_in).status_code == 404

    offered = client.put(
        f"/api/v1/performers/me/services/{market.service.id}", json={}, headers=_auth(hopeful)
    )
    assert offered.status_code == 200
    assert client.post("/api/v1/quotes/preview", json=quote_in).status_code == 200


def test_performer_availability_toggle(api):
    client, market = api
    res = client.post(
        "/api/v1/performers/me/availability",
        json={"is_available": False},
        headers=_auth(market.performer_user),
    )
    assert res.status_code == 200
    assert res.json()["is_available"] is False

    quote = client.post(
        "/api/v1/quotes/preview",
        json={"service_id": market.service.id, "performer_id": market.performer.id, "duration_hours": "2"},
    )
    assert quote.status_code == 404
    assert quote.json()["detail"]["code"] == "unknown_service"
    assert client.get("/api/v1/performers/?available=false").json()[0]["id"] == market.performer.id

    trail = client.get(f"/api/v1/audit/performer/{market.performer.id}", headers=_auth(market.admin))
    assert [(e["action"], e["to_state"]) for e in trail.json()] == [("availability_updated", "unavailable")]
