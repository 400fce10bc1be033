# backend/booking_core/api/api_service.py

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import crud_service
from ..database import get_db
from ..utils.errors import NotFound
from .dependencies import get_current_admin

router = APIRouter(
    # Note: NO prefix here, because main.py already does `prefix="/api/v1/services"`
    tags=["services"],
)
logger = logging.getLogger(__name__)


def _service_or_404(db: Session, service_id: int) -> models.Service:
    service = crud_service.get_service(db, service_id)
    if service is None:
        raise NotFound("Service not found", field="service_id")
    return service


@router.get("/", response_model=List[schemas.ServiceResponse])
def list_services(category: Optional[str] = None, db: Session = Depends(get_db)) -> Any:
    """List active catalogue services (public)."""
    return crud_service.list_services(db, category=category)


@router.get("/{service_id}", response_model=schemas.ServiceResponse)
def read_service(service_id: int, db: Session = Depends(get_db)) -> Any:
    service = _service_or_404(db, service_id)
    if not service.is_active:
        raise NotFound("Service not found", field="service_id")
    return service


@router.post("/", response_model=schemas.ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    *,
    db: Session = Depends(get_db),
    service_in: schemas.ServiceCreate,
    admin: models.User = Depends(get_current_admin),
) -> Any:
    """
    Add a service to the catalogue.
    Full path → POST /api/v1/services/
    """
    return crud_service.create_service(db, service_in, admin.id)


@router.put("/{service_id}", response_model=schemas.ServiceResponse)
def update_service(
    service_id: int,
    service_in: schemas.ServiceUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
) -> Any:
    service = _service_or_404(db, service_id)
    changes = service_in.model_dump(exclude_unset=True)
    logger.info("Service %s updated by admin %s: %s", service.id, admin.id, sorted(changes))
    return crud_service.update_service(db, service, changes, admin.id)
