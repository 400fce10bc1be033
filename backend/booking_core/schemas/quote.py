from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class QuoteRequest(BaseModel):
    service_id: int
    performer_id: int
    duration_hours: Decimal
    guest_count: Optional[int] = None


class QuoteResponse(BaseModel):
    base_amount: Decimal
    referral_percent: Decimal
    referral_amount: Decimal
    deposit_percent: Decimal
    deposit_amount: Decimal
    total_amount: Decimal
    currency: str

    model_config = {"from_attributes": True}
