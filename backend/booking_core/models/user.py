# backend/booking_core/models/user.py

from sqlalchemy import Boolean, Column, Integer, String, Enum as SQLAlchemyEnum
from sqlalchemy.orm import relationship
from .base import BaseModel
import enum


class UserType(str, enum.Enum):
    """Enumeration of all supported user roles."""

    CLIENT = "client"
    PERFORMER = "performer"
    ADMIN = "admin"


class User(BaseModel):
    __tablename__ = "users"

    id           = Column(Integer, primary_key=True, index=True)
    email        = Column(String, unique=True, index=True, nullable=False)
    password     = Column(String, nullable=False)
    first_name   = Column(String, nullable=False)
    last_name    = Column(String, nullable=False)
    phone_number = Column(String, nullable=True)
    user_type    = Column(
        SQLAlchemyEnum(
            UserType,
            name="usertype",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        nullable=False,
        default=UserType.CLIENT,
    )
    is_active    = Column(Boolean, default=True)

    # If this user was approved as a performer they get exactly one profile here
    performer_profile = relationship(
        "PerformerProfile",
        back_populates="user",
        uselist=False,
    )

    # All bookings where this user is the client
    bookings_as_client = relationship(
        "Booking",
        foreign_keys="Booking.client_id",
        back_populates="client",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
