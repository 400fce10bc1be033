# backend/booking_core/models/booking.py

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    DateTime,
    Numeric,
    ForeignKey,
    String,
    Text,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import BookingStatus, BookingPaymentStatus


class Booking(BaseModel):
    __tablename__ = "bookings"

    id          = Column(Integer, primary_key=True, index=True)
    reference   = Column(String(20), unique=True, nullable=False, index=True)
    client_id   = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    performer_id = Column(Integer, ForeignKey("performer_profiles.id"), nullable=False, index=True)
    service_id  = Column(Integer, ForeignKey("services.id"), nullable=False)

    event_date  = Column(DateTime, nullable=False, index=True)
    duration_hours = Column(Numeric(5, 2), nullable=False)
    venue_address = Column(String, nullable=False)
    event_type  = Column(String, nullable=True)
    guest_count = Column(Integer, nullable=True)
    special_requirements = Column(Text, nullable=True)

    # Quote snapshot; recomputed whenever the admin quotes or the client edits
    base_amount     = Column(Numeric(10, 2), nullable=False)
    referral_percent = Column(Numeric(5, 2), nullable=False)
    referral_amount = Column(Numeric(10, 2), nullable=False)
    deposit_percent = Column(Numeric(5, 2), nullable=False)
    deposit_amount  = Column(Numeric(10, 2), nullable=False)
    total_amount    = Column(Numeric(10, 2), nullable=False)

    status = Column(
        SQLAlchemyEnum(
            BookingStatus,
            name="bookingstatus",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status = Column(
        SQLAlchemyEnum(
            BookingPaymentStatus,
            name="bookingpaymentstatus",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        default=BookingPaymentStatus.UNPAID,
        nullable=False,
        index=True,
    )

    quoted_at    = Column(DateTime, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    started_at   = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    rejection_reason    = Column(Text, nullable=True)

    # Late client cancellations wait here for an admin decision
    cancellation_review_requested = Column(Boolean, default=False, nullable=False)
    cancellation_review_reason = Column(Text, nullable=True)
    cancellation_requested_at  = Column(DateTime, nullable=True)

    reminder_sent_at = Column(DateTime, nullable=True)
    balance_reminder_sent_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    client    = relationship("User", foreign_keys=[client_id], back_populates="bookings_as_client")
    performer = relationship("PerformerProfile", back_populates="bookings")
    service   = relationship("Service", back_populates="bookings")
    payments  = relationship(
        "Payment",
        back_populates="booking",
        order_by="Payment.id",
    )
