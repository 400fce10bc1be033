import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import get_db
from ..services.ops_scheduler import run_maintenance

router = APIRouter(tags=["ops"])
logger = logging.getLogger(__name__)


def _check_cron_secret(x_cron_secret: Optional[str] = Header(default=None)) -> None:
    expected = settings.CRON_SECRET
    if not expected or not x_cron_secret or not hmac.compare_digest(x_cron_secret, expected):
        logger.warning("Rejected scheduler tick with missing or bad cron secret")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid cron secret")


@router.post(
    "/ops/scheduler/tick",
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(_check_cron_secret)],
)
def ops_tick(db: Session = Depends(get_db)):
    """Run maintenance tasks once and return a summary.

    Called by an external cron; the ``X-Cron-Secret`` header must match
    ``CRON_SECRET``.
    """
    summary = run_maintenance(db)
    return {"status": "ok", **summary}
