from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..models.booking_status import BookingStatus, BookingPaymentStatus
from ..models.payment import PaymentKind, PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    amount: Decimal
    method: PaymentMethod = PaymentMethod.PAYID
    receipt_ref: str = Field(min_length=1)
    payer_name: str = Field(min_length=1)
    payer_contact: Optional[str] = None


class PaymentVerify(BaseModel):
    outcome: Literal["verified", "rejected"]
    notes: Optional[str] = Field(default=None, max_length=1000)


class PaymentResolve(BaseModel):
    accept: bool
    notes: Optional[str] = Field(default=None, max_length=1000)


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    amount: Decimal
    method: PaymentMethod
    payer_name: str
    payer_contact: Optional[str] = None
    receipt_ref: str
    submitted_at: datetime
    status: PaymentStatus
    kind: Optional[PaymentKind] = None
    expected_amount: Optional[Decimal] = None
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None
    amount_mismatch: bool = False
    mismatch_resolution: Optional[str] = None

    model_config = {"from_attributes": True}


class PaymentDecisionResponse(BaseModel):
    payment: PaymentResponse
    payment_status: PaymentStatus
    booking_status: BookingStatus
    booking_payment_status: BookingPaymentStatus
    amount_mismatch: bool = False
    message: str


class PaymentConfigResponse(BaseModel):
    payid_email: Optional[str] = None
    account_name: Optional[str] = None
    bsb: Optional[str] = None
    account_number: Optional[str] = None
    instructions: Optional[str] = None
    currency: str
