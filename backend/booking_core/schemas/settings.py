from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class SystemSettingsUpdate(BaseModel):
    deposit_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    referral_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    payid_email: Optional[str] = None
    payid_account_name: Optional[str] = None
    bsb: Optional[str] = Field(default=None, pattern=r"^\d{3}-?\d{3}$")
    account_number: Optional[str] = Field(default=None, pattern=r"^\d{6,10}$")
    deposit_instructions: Optional[str] = Field(default=None, max_length=1000)


class SystemSettingsResponse(BaseModel):
    deposit_percent: Decimal
    referral_percent: Decimal
    payid_email: Optional[str] = None
    payid_account_name: Optional[str] = None
    bsb: Optional[str] = None
    account_number: Optional[str] = None
    deposit_instructions: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DoNotServeCreate(BaseModel):
    client_id: Optional[int] = None
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = None
    reason: str = Field(min_length=3)

    @model_validator(mode="after")
    def require_identifier(self) -> "DoNotServeCreate":
        if not (self.client_id or self.client_email or self.client_phone):
            raise ValueError("Provide a client id, email or phone")
        return self


class DoNotServeResponse(BaseModel):
    id: int
    client_id: Optional[int] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    reason: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
