from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.services.census.dates import iso_date_from_any
from app.services.census.trackers import (
    ABT_MACHINE,
    IP_MACHINE,
    VAX_MACHINE,
    AbtStatus,
    CloseReason,
    IpStatus,
    StatusMachine,
    TrackerKind,
    VaxStatus,
)


class Resident(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    mrn: str
    name: str = ""
    unit: str = ""
    room: str = ""
    dob_raw: str = ""
    dob: date | None = None
    status: str = ""
    payor: str = ""
    active_on_census: bool = True
    last_seen_census_at: datetime | None = None
    last_missing_census_at: datetime | None = None

    @field_validator("dob", mode="before")
    @classmethod
    def _parse_dob(cls, value):
        if value in {"", None}:
            return None
        return iso_date_from_any(value)

    @model_validator(mode="after")
    def _dob_from_raw(self) -> "Resident":
        if self.dob is None and self.dob_raw:
            self.dob = iso_date_from_any(self.dob_raw)
        return self

    @field_validator("last_seen_census_at", "last_missing_census_at", mode="before")
    @classmethod
    def _blank_timestamps(cls, value):
        if value == "":
            return None
        return value


class ValidationStatus(str, enum.Enum):
    valid = "valid"
    warning = "warning"
    error = "error"


class RowValidation(BaseModel):
    status: ValidationStatus = ValidationStatus.valid
    issues: list[str] = Field(default_factory=list)
    duplicate: bool = False


class ImportRow(BaseModel):
    key: str
    line_no: int = Field(..., ge=1)
    mrn: str = ""
    name: str = ""
    unit: str = ""
    room: str = ""
    dob_raw: str = ""
    status: str = ""
    payor: str = ""
    validation: RowValidation = Field(default_factory=RowValidation)


class TrackerEpisode(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: ClassVar[TrackerKind]
    machine: ClassVar[StatusMachine]
    legacy_names: ClassVar[dict[str, str]] = {
        "residentName": "resident_name",
        "name": "resident_name",
        "createdAt": "created_at",
        "record_id": "id",
    }

    id: str
    mrn: str = ""
    resident_name: str = ""
    unit: str = ""
    room: str = ""
    notes: str = ""
    created_at: str | None = None
    closed_at: datetime | None = None
    close_reason: CloseReason | None = None
    discharge_audit_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_legacy_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        folded = dict(data)
        for legacy, canonical in cls.legacy_names.items():
            if legacy not in folded:
                continue
            value = folded.pop(legacy)
            if folded.get(canonical) in {None, ""}:
                folded[canonical] = value
        return folded

    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def _coerce_status(cls, value):
        return cls.machine.coerce(value)

    @field_validator("mrn", "notes", "resident_name", "unit", "room", mode="before")
    @classmethod
    def _as_text(cls, value):
        if value is None:
            return ""
        return str(value)

    @property
    def is_open(self) -> bool:
        return self.machine.is_open(self.status)

    def append_note(self, text: str) -> None:
        self.notes = f"{self.notes} {text}".strip()

    def mark_closed(self, today: date) -> None:
        return None


class AbtCourse(TrackerEpisode):
    kind: ClassVar[TrackerKind] = TrackerKind.abx
    machine: ClassVar[StatusMachine] = ABT_MACHINE
    legacy_names: ClassVar[dict[str, str]] = {
        **TrackerEpisode.legacy_names,
        "med_name": "medication",
        "startDate": "start_date",
        "endDate": "end_date",
    }

    status: AbtStatus = AbtStatus.active
    medication: str = ""
    dose: str = ""
    route: str = ""
    indication: str = ""
    start_date: str = ""
    end_date: str = ""

    def mark_closed(self, today: date) -> None:
        self.end_date = today.isoformat()


class IpCase(TrackerEpisode):
    kind: ClassVar[TrackerKind] = TrackerKind.ip
    machine: ClassVar[StatusMachine] = IP_MACHINE
    legacy_names: ClassVar[dict[str, str]] = {
        **TrackerEpisode.legacy_names,
        "infectionType": "infection_type",
        "isolationType": "isolation_type",
        "onsetDate": "onset_date",
        "resolutionDate": "resolution_date",
    }

    status: IpStatus = IpStatus.active
    infection_type: str = ""
    protocol: str = ""
    isolation_type: str = ""
    onset_date: str = ""
    resolution_date: str = ""

    def mark_closed(self, today: date) -> None:
        self.resolution_date = today.isoformat()


class VaxEntry(TrackerEpisode):
    kind: ClassVar[TrackerKind] = TrackerKind.vax
    machine: ClassVar[StatusMachine] = VAX_MACHINE
    legacy_names: ClassVar[dict[str, str]] = {
        **TrackerEpisode.legacy_names,
        "vaccine_type": "vaccine",
        "dueDate": "due_date",
        "dateGiven": "date_given",
    }

    status: VaxStatus = VaxStatus.due
    vaccine: str = ""
    dose: str = ""
    due_date: str = ""
    date_given: str = ""


class AuditEntry(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    action: str
    details: str
    entity_type: str
    timestamp: datetime
    user: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_entity_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "entityType" in data:
            data = dict(data)
            legacy = data.pop("entityType")
            data.setdefault("entity_type", legacy)
        return data


class Document(BaseModel):
    residents: dict[str, Resident] = Field(default_factory=dict)
    abx: list[AbtCourse] = Field(default_factory=list)
    ip_cases: list[IpCase] = Field(default_factory=list)
    vax: list[VaxEntry] = Field(default_factory=list)
    audit_log: list[AuditEntry] = Field(default_factory=list)
    census_imported_at: datetime | None = None
    last_import_at: datetime | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    other_records: dict[str, Any] = Field(default_factory=dict)
    other_sections: dict[str, Any] = Field(default_factory=dict)

    def episodes(self, kind: TrackerKind) -> list[TrackerEpisode]:
        if kind is TrackerKind.abx:
            return self.abx
        if kind is TrackerKind.ip:
            return self.ip_cases
        return self.vax

    def find_episode(self, kind: TrackerKind, episode_id: str) -> TrackerEpisode | None:
        for episode in self.episodes(kind):
            if episode.id == episode_id:
                return episode
        return None

    def active_residents(self) -> list[Resident]:
        return [resident for resident in self.residents.values() if resident.active_on_census]
