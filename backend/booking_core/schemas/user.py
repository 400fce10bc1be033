# backend/booking_core/schemas/user.py

from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from ..models.user import UserType


class UserBase(BaseModel):
    email: EmailStr
    first_name: str
    last_name: str
    phone_number: Optional[str] = None


class UserCreate(UserBase):
    # Everyone registers as a client; performers are promoted through vetting
    password: str = Field(min_length=8)


class UserResponse(UserBase):
    id: int
    user_type: UserType
    is_active: bool

    model_config = {
        "from_attributes": True
    }


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# TokenData for extracting "sub" (email) from JWT
class TokenData(BaseModel):
    email: Optional[str] = None
