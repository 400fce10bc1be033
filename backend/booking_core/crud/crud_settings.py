import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..services.quote_calculator import QuoteSettings
from . import crud_audit

logger = logging.getLogger(__name__)


def get_settings(db: Session) -> models.SystemSettings:
    """Return the settings row, staging one seeded from config if missing."""
    row = db.query(models.SystemSettings).order_by(models.SystemSettings.id.asc()).first()
    if row is None:
        row = models.SystemSettings(
            deposit_percent=settings.DEFAULT_DEPOSIT_PERCENT,
            referral_percent=settings.DEFAULT_REFERRAL_PERCENT,
            payid_email=settings.PAYID_EMAIL or None,
            payid_account_name=settings.PAYID_ACCOUNT_NAME or None,
            bsb=settings.PAYID_BSB or None,
            account_number=settings.PAYID_ACCOUNT_NUMBER or None,
            deposit_instructions=settings.PAYID_INSTRUCTIONS,
        )
        db.add(row)
        db.flush()
        logger.info("Seeded system settings from configuration defaults")
    return row


def quote_settings_for(
    db: Session, performer: Optional[models.PerformerProfile] = None
) -> QuoteSettings:
    """Snapshot the pricing settings, honouring a performer's referral override."""
    row = get_settings(db)
    referral = row.referral_percent
    if performer is not None and performer.referral_percent is not None:
        referral = performer.referral_percent
    return QuoteSettings(referral_percent=referral, deposit_percent=row.deposit_percent)


def update_settings(db: Session, changes: dict[str, Any], admin_id: int) -> models.SystemSettings:
    row = get_settings(db)
    before = {}
    for field, value in changes.items():
        before[field] = _jsonable(getattr(row, field))
        setattr(row, field, value)
    row.updated_by = admin_id
    crud_audit.record(
        db,
        entity_type="system_settings",
        entity_id=row.id,
        action="settings_updated",
        actor_id=admin_id,
        changes={"before": before, "after": {k: _jsonable(v) for k, v in changes.items()}},
    )
    db.commit()
    db.refresh(row)
    return row


def payment_config(db: Session) -> dict[str, Any]:
    row = get_settings(db)
    return {
        "payid_email": row.payid_email,
        "account_name": row.payid_account_name,
        "bsb": row.bsb,
        "account_number": row.account_number,
        "instructions": row.deposit_instructions,
        "currency": settings.DEFAULT_CURRENCY,
    }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
