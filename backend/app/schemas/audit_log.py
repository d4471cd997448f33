from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    action: str
    details: str
    entity_type: str
    timestamp: datetime
    user: Optional[str] = None
