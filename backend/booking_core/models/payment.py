# backend/booking_core/models/payment.py

import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow


class PaymentMethod(str, enum.Enum):
    PAYID = "payid"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class PaymentStatus(str, enum.Enum):
    """Verification state of a single claimed payment."""

    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PaymentKind(str, enum.Enum):
    DEPOSIT = "deposit"
    BALANCE = "balance"


_PENDING_ONLY = text("status = 'pending_verification'")


class Payment(BaseModel):
    __tablename__ = "payments"
    __table_args__ = (
        # At most one payment awaiting verification per booking
        Index(
            "uq_payments_pending_per_booking",
            "booking_id",
            unique=True,
            sqlite_where=_PENDING_ONLY,
            postgresql_where=_PENDING_ONLY,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(
        SQLAlchemyEnum(
            PaymentMethod,
            name="paymentmethod",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        nullable=False,
    )
    payer_name = Column(String, nullable=False)
    payer_contact = Column(String, nullable=True)
    receipt_ref = Column(String, nullable=False)
    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)

    status = Column(
        SQLAlchemyEnum(
            PaymentStatus,
            name="paymentstatus",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        default=PaymentStatus.PENDING_VERIFICATION,
        nullable=False,
        index=True,
    )
    kind = Column(
        SQLAlchemyEnum(
            PaymentKind,
            name="paymentkind",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        nullable=True,
    )
    expected_amount = Column(Numeric(10, 2), nullable=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    amount_mismatch = Column(Boolean, default=False, nullable=False)
    mismatch_resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    mismatch_resolved_at = Column(DateTime, nullable=True)
    # "accepted" or "dismissed" once an admin has looked at the mismatch
    mismatch_resolution = Column(String, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    booking = relationship("Booking", back_populates="payments")

    @property
    def counts_toward_total(self) -> bool:
        """Verified money that has been applied to the booking."""
        if self.status != PaymentStatus.VERIFIED:
            return False
        if self.amount_mismatch:
            return self.mismatch_resolution == "accepted"
        return True
