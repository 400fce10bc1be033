# backend/booking_core/api/api_payment.py

import logging
from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import crud_payment, crud_settings
from ..database import get_db
from ..services import access_policy, payment_reconciliation
from ..services.access_policy import Action
from ..utils.errors import NotFound
from .dependencies import get_booking_or_404, get_current_active_user, get_current_admin

router = APIRouter(tags=["payments"])
logger = logging.getLogger(__name__)


def _get_payment_or_404(payment_id: int, db: Session = Depends(get_db)) -> models.Payment:
    payment = crud_payment.get_payment(db, payment_id)
    if payment is None:
        raise NotFound("Payment not found", field="payment_id")
    return payment


def _decision(result: payment_reconciliation.VerificationResult) -> schemas.PaymentDecisionResponse:
    payment = result.payment
    return schemas.PaymentDecisionResponse(
        payment=schemas.PaymentResponse.model_validate(payment),
        payment_status=payment.status,
        booking_status=result.booking.status,
        booking_payment_status=result.booking.payment_status,
        amount_mismatch=bool(payment.amount_mismatch),
        message=result.message,
    )


@router.get("/payments/config", response_model=schemas.PaymentConfigResponse)
def read_payment_config(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    """PayID and bank details clients pay into."""
    return crud_settings.payment_config(db)


@router.post(
    "/bookings/{booking_id}/payments",
    response_model=schemas.PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_payment(
    payment_in: schemas.PaymentCreate,
    booking: models.Booking = Depends(get_booking_or_404),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    access_policy.require(current_user, Action.SUBMIT_PAYMENT, booking)
    return payment_reconciliation.submit_payment(
        db,
        booking,
        amount=payment_in.amount,
        method=payment_in.method,
        receipt_ref=payment_in.receipt_ref,
        payer_name=payment_in.payer_name,
        payer_contact=payment_in.payer_contact,
        actor=current_user,
    )


@router.get("/bookings/{booking_id}/payments", response_model=List[schemas.PaymentResponse])
def list_booking_payments(
    booking: models.Booking = Depends(get_booking_or_404),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
) -> Any:
    access_policy.require(current_user, Action.VIEW_PAYMENTS, booking)
    return crud_payment.get_payments_for_booking(db, booking.id)


@router.post("/payments/{payment_id}/verify", response_model=schemas.PaymentDecisionResponse)
def verify_payment(
    verify_in: schemas.PaymentVerify,
    payment: models.Payment = Depends(_get_payment_or_404),
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    result = payment_reconciliation.verify_payment(
        db, payment, verify_in.outcome, admin=admin, notes=verify_in.notes
    )
    return _decision(result)


@router.post("/payments/{payment_id}/resolve", response_model=schemas.PaymentDecisionResponse)
def resolve_payment_mismatch(
    resolve_in: schemas.PaymentResolve,
    payment: models.Payment = Depends(_get_payment_or_404),
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    result = payment_reconciliation.resolve_mismatch(
        db, payment, admin=admin, accept=resolve_in.accept, notes=resolve_in.notes
    )
    return _decision(result)
