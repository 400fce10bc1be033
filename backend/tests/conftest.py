from pathlib import Path
from dotenv import load_dotenv

# Load environment variables for tests before the app modules read them
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')

import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from booking_core import models
from booking_core.models import (
    BookingPaymentStatus,
    BookingStatus,
    RateType,
    UserType,
    VettingStatus,
)
from booking_core.models.base import BaseModel


# Replace the background worker for all tests so nothing is delivered
@pytest.fixture(autouse=True)
def enqueued(monkeypatch):
    """Record every delivery handed to the background worker."""
    calls: list[tuple[Any, tuple, dict]] = []

    def _record(func, *args, **kwargs):
        calls.append((func, args, kwargs))
        return f"task-{len(calls)}"

    monkeypatch.setattr("booking_core.utils.background_worker.enqueue", _record)
    return calls


def setup_engine(url: str = "sqlite:///:memory:"):
    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.endswith(":memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    BaseModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def db():
    engine = setup_engine()
    Session = sessionmaker(bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


_emails = itertools.count(1)
_references = itertools.count(1)


def create_user(db: Session, user_type: UserType = UserType.CLIENT, **fields) -> models.User:
    n = next(_emails)
    user = models.User(
        email=fields.pop("email", f"user{n}@test.com"),
        password=fields.pop("password", "x"),
        first_name=fields.pop("first_name", f"User{n}"),
        last_name=fields.pop("last_name", "Test"),
        user_type=user_type,
        is_active=True,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_performer(db: Session, user: models.User, stage_name: str = "DJ Test") -> models.PerformerProfile:
    application = models.VettingApplication(
        user_id=user.id,
        full_name=user.full_name,
        stage_name=stage_name,
        email=user.email,
        phone="0400000000",
        status=VettingStatus.APPROVED,
    )
    db.add(application)
    db.flush()
    profile = models.PerformerProfile(
        user_id=user.id,
        application_id=application.id,
        stage_name=stage_name,
        is_available=True,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@dataclass
class Market:
    """An admin, a client and a performer offering one per-hour service."""

    db: Session
    admin: models.User
    client: models.User
    performer_user: models.User
    performer: models.PerformerProfile
    service: models.Service
    offering: models.PerformerService

    def booking(
        self,
        status: BookingStatus = BookingStatus.QUOTE_SENT,
        payment_status: BookingPaymentStatus = BookingPaymentStatus.UNPAID,
        event_in: timedelta = timedelta(days=10),
        now: datetime | None = None,
        **fields,
    ) -> models.Booking:
        """A 2 hour booking at 150/hr: total 330.00, deposit 165.00."""
        now = now or datetime.utcnow()
        values = dict(
            reference=f"FE-20300101-{next(_references):04d}",
            client_id=self.client.id,
            performer_id=self.performer.id,
            service_id=self.service.id,
            event_date=now + event_in,
            duration_hours=Decimal("2"),
            venue_address="1 Harbour Street, Sydney NSW",
            status=status,
            payment_status=payment_status,
            base_amount=Decimal("300.00"),
            referral_percent=Decimal("10"),
            referral_amount=Decimal("30.00"),
            deposit_percent=Decimal("50"),
            deposit_amount=Decimal("165.00"),
            total_amount=Decimal("330.00"),
            quoted_at=now if status == BookingStatus.QUOTE_SENT else None,
        )
        values.update(fields)
        booking = models.Booking(**values)
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking


def build_market(db: Session) -> Market:
    admin = create_user(db, UserType.ADMIN, first_name="Ada")
    client = create_user(db, UserType.CLIENT, first_name="Cleo", phone_number="0411111111")
    performer_user = create_user(db, UserType.PERFORMER, first_name="Pat")
    performer = create_performer(db, performer_user)
    service = models.Service(
        name="DJ Set",
        category="music",
        rate_type=RateType.PER_HOUR,
        base_rate=Decimal("150.00"),
        is_active=True,
    )
    db.add(service)
    db.flush()
    offering = models.PerformerService(
        performer_id=performer.id, service_id=service.id, is_available=True
    )
    db.add(offering)
    db.commit()
    return Market(
        db=db,
        admin=admin,
        client=client,
        performer_user=performer_user,
        performer=performer,
        service=service,
        offering=offering,
    )


@pytest.fixture
def market(db):
    return build_market(db)
