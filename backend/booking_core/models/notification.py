from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLAlchemyEnum
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel, utcnow

class NotificationType(str, enum.Enum):
    NEW_BOOKING = "new_booking"
    BOOKING_STATUS_UPDATED = "booking_status_updated"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_MISMATCH = "payment_mismatch"
    CANCELLATION_REVIEW = "cancellation_review"
    VETTING_UPDATE = "vetting_update"
    REMINDER = "reminder"

class Notification(BaseModel):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(
        SQLAlchemyEnum(
            NotificationType,
            name="notificationtype",
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        nullable=False,
    )
    message = Column(String, nullable=False)
    link = Column(String, nullable=False)
    is_read = Column(Boolean, default=False)
    timestamp = Column(DateTime, default=utcnow)

    user = relationship("User", backref="notifications")
