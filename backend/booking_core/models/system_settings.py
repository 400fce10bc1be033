from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text

from .base import BaseModel


class SystemSettings(BaseModel):
    """Single-row table of admin-editable pricing and payment settings."""

    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True)
    deposit_percent = Column(Numeric(5, 2), nullable=False)
    referral_percent = Column(Numeric(5, 2), nullable=False)
    payid_email = Column(String, nullable=True)
    payid_account_name = Column(String, nullable=True)
    bsb = Column(String(7), nullable=True)
    account_number = Column(String(20), nullable=True)
    deposit_instructions = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
