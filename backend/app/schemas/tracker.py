from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TrackerDischargeRequest(BaseModel):
    user: Optional[str] = Field(default=None, max_length=120)


class TrackerEpisodeOut(BaseModel):
    id: str
    kind: str
    mrn: str
    resident_name: str
    unit: str
    room: str
    status: str
    notes: str
    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None
    discharge_audit_id: Optional[str] = None
