"""Manual payment reconciliation.

Clients pay off-platform (PayID, bank transfer, cash) and submit a receipt
reference. An admin then verifies or rejects the claim against the amount
the booking expects. Verification, any resulting booking transition and the
audit entries are committed together.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import models
from ..core.config import settings
from ..crud import crud_audit, crud_payment
from ..models.base import utcnow
from ..models.booking_status import BookingPaymentStatus, BookingStatus
from ..models.payment import PaymentKind, PaymentMethod, PaymentStatus
from ..utils import notifications
from ..utils.errors import (
    BookingNotPayable,
    ConcurrentModification,
    DuplicatePendingPayment,
    InvalidPaymentAmount,
    InvalidTransition,
    ValidationError,
)
from .booking_state import TransitionOutcome, announce, apply_transition
from .quote_calculator import balance_due, round2, to_decimal

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
DISMISSED = "dismissed"


@dataclass
class VerificationResult:
    payment: models.Payment
    changed: bool = True
    transition: Optional[TransitionOutcome] = None

    @property
    def booking(self) -> models.Booking:
        return self.payment.booking

    @property
    def message(self) -> str:
        payment = self.payment
        if payment.status == PaymentStatus.REJECTED:
            return "Payment rejected"
        if payment.amount_mismatch and payment.mismatch_resolution is None:
            return (
                f"Payment recorded but does not match the {payment.expected_amount} expected; "
                "pending review"
            )
        if payment.mismatch_resolution == DISMISSED:
            return "Payment mismatch dismissed; payment not applied"
        if self.transition is not None:
            return f"Payment verified; booking {self.transition.to_status.value}"
        return "Payment verified"


def expected_payment(db: Session, booking: models.Booking) -> tuple[PaymentKind, Decimal]:
    """Kind and amount of the next payment the booking is waiting for."""
    deposit = to_decimal(booking.deposit_amount or 0)
    if booking.payment_status == BookingPaymentStatus.UNPAID and deposit > 0:
        return PaymentKind.DEPOSIT, round2(deposit)
    paid = crud_payment.applied_total(db, booking.id)
    return PaymentKind.BALANCE, balance_due(booking.total_amount, paid)


def _within_tolerance(amount: Decimal, expected: Decimal) -> bool:
    return abs(to_decimal(amount) - expected) <= settings.PAYMENT_AMOUNT_TOLERANCE


@contextmanager
def _decision(db: Session, payment: models.Payment) -> Iterator[None]:
    """Stage a decision on ``payment`` and commit it as one unit.

    A payment or booking that another session changed since it was loaded
    fails the version check and nothing is written.
    """
    payment_id, booking_id = payment.id, payment.booking_id
    try:
        yield
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning(
            "Concurrent decision on payment %s (booking %s): %s", payment_id, booking_id, exc
        )
        raise ConcurrentModification(
            "Payment was changed by someone else, please refresh and retry"
        ) from exc
    except Exception:
        db.rollback()
        raise


def submit_payment(
    db: Session,
    booking: models.Booking,
    *,
    amount: Any,
    method: PaymentMethod,
    receipt_ref: str,
    payer_name: str,
    payer_contact: Optional[str] = None,
    actor: Optional[models.User] = None,
    now: Optional[datetime] = None,
) -> models.Payment:
    """Record a claimed payment awaiting admin verification."""
    now = now or utcnow()
    try:
        amount = round2(to_decimal(amount))
    except ValueError as exc:
        raise InvalidPaymentAmount("Amount must be a number") from exc
    if amount <= 0:
        raise InvalidPaymentAmount("Amount must be greater than zero")
    if not (receipt_ref and receipt_ref.strip()):
        raise ValidationError("A receipt reference is required", field="receipt_ref")

    if booking.status.is_terminal:
        raise BookingNotPayable(f"Booking is {booking.status.value} and cannot take payments")
    if booking.payment_status == BookingPaymentStatus.FULLY_PAID:
        raise BookingNotPayable("Booking is already fully paid")
    if crud_payment.get_pending_for_booking(db, booking.id) is not None:
        raise DuplicatePendingPayment("A payment for this booking is already awaiting verification")

    kind, expected = expected_payment(db, booking)
    payment = models.Payment(
        booking_id=booking.id,
        amount=amount,
        method=method,
        receipt_ref=receipt_ref.strip(),
        payer_name=payer_name,
        payer_contact=payer_contact,
        submitted_by=actor.id if actor is not None else None,
        submitted_at=now,
        status=PaymentStatus.PENDING_VERIFICATION,
        kind=kind,
        expected_amount=expected,
    )
    try:
        db.add(payment)
        db.flush()
        crud_audit.record(
            db,
            entity_type="payment",
            entity_id=payment.id,
            action="payment_submitted",
            actor_id=actor.id if actor is not None else None,
            to_state=PaymentStatus.PENDING_VERIFICATION.value,
            changes={
                "booking_id": booking.id,
                "amount": str(amount),
                "method": method.value,
                "receipt_ref": payment.receipt_ref,
            },
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Duplicate pending payment for booking %s rejected by index", booking.id)
        raise DuplicatePendingPayment(
            "A payment for this booking is already awaiting verification"
        ) from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)
    logger.info(
        "Payment %s submitted for booking %s amount=%s kind=%s",
        payment.id,
        booking.id,
        amount,
        kind.value,
    )
    notifications.best_effort(
        notifications.notify_payment_submitted, db, payment, correlation_id=booking.reference
    )
    return payment


def _apply_to_booking(
    db: Session,
    payment: models.Payment,
    *,
    admin: models.User,
    paid_before: Decimal,
    now: datetime,
) -> Optional[TransitionOutcome]:
    """Update the booking for money that now counts toward its total."""
    booking = payment.booking
    paid = paid_before + to_decimal(payment.amount)
    remaining = to_decimal(booking.total_amount) - paid
    previous = booking.payment_status
    if payment.kind == PaymentKind.BALANCE or remaining <= settings.PAYMENT_AMOUNT_TOLERANCE:
        booking.payment_status = BookingPaymentStatus.FULLY_PAID
    else:
        booking.payment_status = BookingPaymentStatus.DEPOSIT_PAID
    crud_audit.record(
        db,
        entity_type="booking",
        entity_id=booking.id,
        action="payment_applied",
        actor_id=admin.id,
        from_state=previous.value,
        to_state=booking.payment_status.value,
        changes={"payment_id": payment.id, "paid_total": str(paid)},
    )
    if booking.status == BookingStatus.QUOTE_SENT:
        return apply_transition(
            db,
            booking,
            BookingStatus.CONFIRMED,
            actor=admin,
            reason=f"{payment.kind.value.capitalize()} payment verified",
            now=now,
        )
    db.flush()
    return None


def _after_commit(db: Session, result: VerificationResult) -> None:
    payment = result.payment
    cid = f"{payment.booking.reference}/payment-{payment.id}"
    if payment.status == PaymentStatus.REJECTED:
        notifications.best_effort(notifications.notify_payment_rejected, db, payment, correlation_id=cid)
    elif payment.amount_mismatch and payment.mismatch_resolution is None:
        notifications.best_effort(notifications.notify_payment_mismatch, db, payment, correlation_id=cid)
    elif payment.counts_toward_total:
        notifications.best_effort(notifications.notify_payment_verified, db, payment, correlation_id=cid)
    if result.transition is not None:
        announce(db, result.transition)


def verify_payment(
    db: Session,
    payment: models.Payment,
    outcome: str,
    *,
    admin: models.User,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """Record an admin's verification decision for ``payment``.

    A payment that was already decided is returned as recorded, without
    writing or notifying anything. Two admins deciding the same payment at
    once cannot both win: the later commit raises ConcurrentModification.
    """
    target = PaymentStatus(outcome)
    if target == PaymentStatus.PENDING_VERIFICATION:
        raise ValidationError("Outcome must be verified or rejected", field="outcome")
    if payment.status != PaymentStatus.PENDING_VERIFICATION:
        logger.info(
            "Payment %s already %s; ignoring %s", payment.id, payment.status.value, outcome
        )
        return VerificationResult(payment=payment, changed=False)

    now = now or utcnow()
    booking = payment.booking
    if target == PaymentStatus.VERIFIED and booking.status.is_terminal:
        raise BookingNotPayable(
            f"Booking is {booking.status.value}; reject the payment instead"
        )

    transition = None
    with _decision(db, payment):
        payment.verified_by = admin.id
        payment.verified_at = now
        if notes:
            payment.notes = notes
        if target == PaymentStatus.REJECTED:
            payment.status = PaymentStatus.REJECTED
        else:
            kind, expected = expected_payment(db, booking)
            paid_before = crud_payment.applied_total(db, booking.id)
            payment.kind = kind
            payment.expected_amount = expected
            payment.status = PaymentStatus.VERIFIED
            if _within_tolerance(payment.amount, expected):
                transition = _apply_to_booking(
                    db, payment, admin=admin, paid_before=paid_before, now=now
                )
            else:
                payment.amount_mismatch = True
        crud_audit.record(
            db,
            entity_type="payment",
            entity_id=payment.id,
            action="payment_verified" if target == PaymentStatus.VERIFIED else "payment_rejected",
            actor_id=admin.id,
            from_state=PaymentStatus.PENDING_VERIFICATION.value,
            to_state=payment.status.value,
            reason=notes,
            changes={
                "amount": str(payment.amount),
                "expected_amount": str(payment.expected_amount) if payment.expected_amount is not None else None,
                "amount_mismatch": bool(payment.amount_mismatch),
            },
        )
    db.refresh(payment)

    result = VerificationResult(payment=payment, transition=transition)
    logger.info(
        "Payment %s for booking %s %s by admin %s mismatch=%s",
        payment.id,
        booking.id,
        payment.status.value,
        admin.id,
        payment.amount_mismatch,
    )
    _after_commit(db, result)
    return result


def resolve_mismatch(
    db: Session,
    payment: models.Payment,
    *,
    admin: models.User,
    accept: bool,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """Close the mismatch flag on a verified payment.

    Accepting applies the payment as the kind it was expected to be;
    dismissing leaves the booking untouched.
    """
    if payment.status != PaymentStatus.VERIFIED or not payment.amount_mismatch:
        raise InvalidTransition("Payment has no amount mismatch to resolve", field="payment_id")
    if payment.mismatch_resolution is not None:
        return VerificationResult(payment=payment, changed=False)

    now = now or utcnow()
    booking = payment.booking
    if accept and booking.status.is_terminal:
        raise BookingNotPayable(
            f"Booking is {booking.status.value}; the payment cannot be applied"
        )

    transition = None
    with _decision(db, payment):
        if accept:
            paid_before = crud_payment.applied_total(db, booking.id)
            payment.mismatch_resolution = ACCEPTED
            transition = _apply_to_booking(
                db, payment, admin=admin, paid_before=paid_before, now=now
            )
        else:
            payment.mismatch_resolution = DISMISSED
        payment.mismatch_resolved_by = admin.id
        payment.mismatch_resolved_at = now
        if notes:
            payment.notes = notes
        crud_audit.record(
            db,
            entity_type="payment",
            entity_id=payment.id,
            action="mismatch_accepted" if accept else "mismatch_dismissed",
            actor_id=admin.id,
            reason=notes,
            changes={
                "amount": str(payment.amount),
                "expected_amount": str(payment.expected_amount),
            },
        )
    db.refresh(payment)

    result = VerificationResult(payment=payment, transition=transition)
    logger.info(
        "Payment %s mismatch %s by admin %s", payment.id, payment.mismatch_resolution, admin.id
    )
    _after_commit(db, result)
    return result
