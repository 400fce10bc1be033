from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..models.payment import PaymentStatus


def get_payment(db: Session, payment_id: int) -> Optional[models.Payment]:
    return db.query(models.Payment).filter(models.Payment.id == payment_id).first()


def get_payments_for_booking(db: Session, booking_id: int) -> List[models.Payment]:
    return (
        db.query(models.Payment)
        .filter(models.Payment.booking_id == booking_id)
        .order_by(models.Payment.submitted_at.asc(), models.Payment.id.asc())
        .all()
    )


def get_pending_for_booking(db: Session, booking_id: int) -> Optional[models.Payment]:
    return (
        db.query(models.Payment)
        .filter(
            models.Payment.booking_id == booking_id,
            models.Payment.status == PaymentStatus.PENDING_VERIFICATION,
        )
        .first()
    )


def applied_total(db: Session, booking_id: int) -> Decimal:
    """Sum of verified payments that have been applied to the booking."""
    total = Decimal("0")
    for payment in get_payments_for_booking(db, booking_id):
        if payment.counts_toward_total:
            total += Decimal(str(payment.amount))
    return total


def get_pending_queue(db: Session, skip: int = 0, limit: int = 100) -> List[models.Payment]:
    return (
        db.query(models.Payment)
        .filter(models.Payment.status == PaymentStatus.PENDING_VERIFICATION)
        .order_by(models.Payment.submitted_at.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_unresolved_mismatches(db: Session, skip: int = 0, limit: int = 100) -> List[models.Payment]:
    return (
        db.query(models.Payment)
        .filter(
            models.Payment.amount_mismatch.is_(True),
            models.Payment.mismatch_resolution.is_(None),
        )
        .order_by(models.Payment.verified_at.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )
