from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.service import RateType


# Shared properties for Service
class ServiceBase(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    category: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    rate_type: RateType = RateType.PER_HOUR
    base_rate: Decimal = Field(gt=0)
    min_duration_minutes: Optional[int] = Field(default=None, ge=0)


class ServiceCreate(ServiceBase):
    pass


# Every field optional so admins can patch a single value
class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    category: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    rate_type: Optional[RateType] = None
    base_rate: Optional[Decimal] = Field(default=None, gt=0)
    min_duration_minutes: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ServiceResponse(ServiceBase):
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OfferingUpdate(BaseModel):
    """A performer's terms for one catalogue service."""

    custom_rate: Optional[Decimal] = Field(default=None, gt=0)
    is_available: bool = True


class OfferingResponse(BaseModel):
    service_id: int
    custom_rate: Optional[Decimal] = None
    effective_rate: Decimal
    is_available: bool
    service: ServiceResponse

    model_config = {"from_attributes": True}


class AvailabilityUpdate(BaseModel):
    is_available: bool


class PerformerResponse(BaseModel):
    id: int
    stage_name: str
    bio: Optional[str] = None
    location: Optional[str] = None
    is_available: bool
    verified: bool
    offerings: List[OfferingResponse] = []

    model_config = {"from_attributes": True}
