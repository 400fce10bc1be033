from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from ..models.vetting_application import VettingStatus


class VettingApplicationCreate(BaseModel):
    full_name: str = Field(min_length=2)
    stage_name: str = Field(min_length=2)
    email: EmailStr
    phone: str = Field(min_length=6)
    date_of_birth: Optional[date] = None
    location: Optional[str] = None
    performance_type: Optional[str] = None
    experience_years: Optional[int] = Field(default=None, ge=0)
    bio: Optional[str] = Field(default=None, max_length=2000)
    portfolio_urls: List[str] = []
    document_refs: List[str] = []


class VettingReview(BaseModel):
    decision: Literal["approved", "rejected"]
    notes: Optional[str] = Field(default=None, max_length=1000)


class VettingApplicationResponse(BaseModel):
    id: int
    user_id: int
    full_name: str
    stage_name: str
    email: str
    phone: str
    location: Optional[str] = None
    performance_type: Optional[str] = None
    experience_years: Optional[int] = None
    status: VettingStatus
    reviewer_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PerformerProfileResponse(BaseModel):
    id: int
    user_id: int
    stage_name: str
    bio: Optional[str] = None
    location: Optional[str] = None
    is_available: bool

    model_config = {"from_attributes": True}


class VettingDecisionResponse(BaseModel):
    application: VettingApplicationResponse
    performer: Optional[PerformerProfileResponse] = None
