# backend/booking_core/models/service.py
from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    String,
    Numeric,
    ForeignKey,
    Text,
    UniqueConstraint,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import relationship
from .base import BaseModel
import enum


class RateType(str, enum.Enum):
    """How a service's base rate scales into a quote."""

    PER_HOUR = "per_hour"
    FLAT_RATE = "flat_rate"
    PER_PERSON = "per_person"


class Service(BaseModel):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    category = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    rate_type = Column(
        SQLAlchemyEnum(
            RateType,
            name="ratetype",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        nullable=False,
        default=RateType.PER_HOUR,
    )
    base_rate = Column(Numeric(10, 2), nullable=False)
    min_duration_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    performers = relationship("PerformerService", back_populates="service")
    bookings = relationship("Booking", back_populates="service")


class PerformerService(BaseModel):
    """A performer offering a catalogue service, optionally at a custom rate."""

    __tablename__ = "performer_services"
    __table_args__ = (
        UniqueConstraint("performer_id", "service_id", name="uq_performer_service"),
    )

    id = Column(Integer, primary_key=True, index=True)
    performer_id = Column(
        Integer, ForeignKey("performer_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_id = Column(
        Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True
    )
    custom_rate = Column(Numeric(10, 2), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)

    performer = relationship("PerformerProfile", back_populates="services")
    service = relationship("Service", back_populates="performers")

    @property
    def effective_rate(self):
        """The performer's custom rate, or the catalogue rate when unset."""
        return self.custom_rate if self.custom_rate is not None else self.service.base_rate
