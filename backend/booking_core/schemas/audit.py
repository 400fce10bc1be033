from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: int
    actor_id: Optional[int] = None
    entity_type: str
    entity_id: int
    action: str
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    reason: Optional[str] = None
    changes: Optional[dict[str, Any]] = None
    timestamp: datetime

    model_config = {"from_attributes": True}
