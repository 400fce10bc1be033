from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class DoNotServeEntry(BaseModel):
    """A client barred from booking, matched by account, email or phone."""

    __tablename__ = "do_not_serve_registry"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    client_email = Column(String, nullable=True, index=True)
    client_phone = Column(String, nullable=True, index=True)
    reason = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    added_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    client = relationship("User", foreign_keys=[client_id])
