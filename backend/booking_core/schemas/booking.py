from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from ..models.booking_status import BookingStatus, BookingPaymentStatus


# Shared properties for Booking
class BookingBase(BaseModel):
    event_date: datetime
    duration_hours: Decimal
    venue_address: str = Field(min_length=10)
    event_type: Optional[str] = None
    guest_count: Optional[int] = Field(default=None, ge=1)
    special_requirements: Optional[str] = Field(default=None, max_length=500)


# Properties to receive on item creation (from a client)
class BookingCreate(BookingBase):
    performer_id: int
    service_id: int


# Pre-confirmation edits by the client
class BookingUpdate(BaseModel):
    event_date: Optional[datetime] = None
    duration_hours: Optional[Decimal] = None
    venue_address: Optional[str] = Field(default=None, min_length=10)
    event_type: Optional[str] = None
    guest_count: Optional[int] = Field(default=None, ge=1)
    special_requirements: Optional[str] = Field(default=None, max_length=500)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(default=None, max_length=1000)


class BookingResponse(BookingBase):
    id: int
    reference: str
    client_id: int
    performer_id: int
    service_id: int
    status: BookingStatus
    payment_status: BookingPaymentStatus
    base_amount: Decimal
    referral_percent: Decimal
    referral_amount: Decimal
    deposit_percent: Decimal
    deposit_amount: Decimal
    total_amount: Decimal
    quoted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    cancellation_review_requested: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class TransitionResponse(BaseModel):
    booking: BookingResponse
    new_status: BookingStatus
    flagged_for_review: bool = False
    message: Optional[str] = None
