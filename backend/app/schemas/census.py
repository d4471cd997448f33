from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.census.types import ValidationStatus


class CensusPreviewRequest(BaseModel):
    raw_text: str = Field(..., max_length=500_000)


class RowValidationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: ValidationStatus
    issues: list[str]
    duplicate: bool


class ImportRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    line_no: int
    mrn: str
    name: str
    unit: str
    room: str
    dob_raw: str
    status: str
    payor: str
    validation: RowValidationOut


class ValidationSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    valid: int
    warnings: int
    errors: int
    duplicate_mrns: list[str]


class CensusPreviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rows: list[ImportRowOut]
    default_selected: list[str]
    summary: ValidationSummaryOut


class CensusApplyRequest(BaseModel):
    raw_text: str = Field(..., max_length=500_000)
    selected_keys: Optional[list[str]] = None
    allow_error_override: bool = False
    user: Optional[str] = Field(default=None, max_length=120)


class CensusApplyOut(BaseModel):
    rows_selected: int
    residents_created: int
    residents_updated: int
    residents_unchanged: int
    residents_reactivated: int
    residents_dropped: int
    location_changes: int
    tracker_locations_updated: int
    abx_closed: int
    ip_closed: int
    vax_closed: int
    duplicate_mrns: list[str]
    audit_ids: list[str]
    message: str


class ResidentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    mrn: str
    name: str
    unit: str
    room: str
    dob_raw: str
    dob: Optional[date] = None
    status: str
    payor: str
    active_on_census: bool
    last_seen_census_at: Optional[datetime] = None
    last_missing_census_at: Optional[datetime] = None
