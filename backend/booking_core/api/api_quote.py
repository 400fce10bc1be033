import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..core.config import settings
from ..crud import crud_service, crud_settings
from ..database import get_db
from ..services.quote_calculator import calculate_quote

router = APIRouter(tags=["Quotes"])
logger = logging.getLogger(__name__)


@router.post("/preview", response_model=schemas.QuoteResponse)
def preview_quote(quote_in: schemas.QuoteRequest, db: Session = Depends(get_db)):
    """Price a prospective booking without persisting anything."""
    rate, offering = crud_service.resolve_service_rate(db, quote_in.service_id, quote_in.performer_id)
    quote = calculate_quote(
        rate,
        crud_settings.quote_settings_for(db, offering.performer),
        quote_in.duration_hours,
        quote_in.guest_count,
    )
    return schemas.QuoteResponse(**quote.as_booking_fields(), currency=settings.DEFAULT_CURRENCY)
