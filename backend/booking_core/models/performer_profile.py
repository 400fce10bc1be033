# backend/booking_core/models/performer_profile.py

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class PerformerProfile(BaseModel):
    """Public profile of an approved performer.

    Rows are only ever created by an approved vetting application.
    """

    __tablename__ = "performer_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    application_id = Column(
        Integer, ForeignKey("vetting_applications.id"), unique=True, nullable=False
    )
    stage_name = Column(String, index=True, nullable=False)
    bio = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    # Overrides the system-wide referral percent when set
    referral_percent = Column(Numeric(5, 2), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    verified = Column(Boolean, default=True, nullable=False)

    user = relationship("User", back_populates="performer_profile")
    application = relationship("VettingApplication")
    services = relationship(
        "PerformerService",
        back_populates="performer",
        cascade="all, delete-orphan",
    )
    bookings = relationship("Booking", back_populates="performer")

    @property
    def offerings(self):
        """Services this performer currently takes bookings for."""
        return [ps for ps in self.services if ps.is_available and ps.service.is_active]
