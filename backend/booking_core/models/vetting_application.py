# backend/booking_core/models/vetting_application.py

import enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class VettingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VettingApplication(BaseModel):
    """Performer onboarding request awaiting an admin decision."""

    __tablename__ = "vetting_applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    full_name = Column(String, nullable=False)
    stage_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    location = Column(String, nullable=True)
    performance_type = Column(String, nullable=True)
    experience_years = Column(Integer, nullable=True)
    bio = Column(Text, nullable=True)
    portfolio_urls = Column(JSON, nullable=True)
    # Opaque references into external document storage
    document_refs = Column(JSON, nullable=True)

    status = Column(
        SQLAlchemyEnum(
            VettingStatus,
            name="vettingstatus",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        default=VettingStatus.PENDING,
        nullable=False,
        index=True,
    )
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    applicant = relationship("User", foreign_keys=[user_id])
    reviewer = relationship("User", foreign_keys=[reviewer_id])
