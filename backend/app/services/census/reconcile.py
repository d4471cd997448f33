from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping

from app.services.census.dates import iso_date_from_any
from app.services.census.identity import canonical_mrn
from app.services.census.types import ImportRow, Resident

MERGE_FIELDS = ("name", "unit", "room", "dob_raw", "status", "payor")


@dataclass(frozen=True)
class LocationChange:
    mrn: str
    old_unit: str
    old_room: str
    new_unit: str
    new_room: str


@dataclass
class ReconcileResult:
    updated_residents: dict[str, Resident]
    dropped_mrns: list[str] = field(default_factory=list)
    location_changes: list[LocationChange] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    reactivated: list[str] = field(default_factory=list)

    @property
    def seen_mrns(self) -> list[str]:
        return self.created + self.updated + self.unchanged


def reconcile(
    existing: Mapping[str, Resident],
    selected_rows: Iterable[ImportRow],
    now: datetime,
) -> ReconcileResult:
    residents = {mrn: resident.model_copy(deep=True) for mrn, resident in existing.items()}
    seen: list[str] = []
    for row in selected_rows:
        mrn = canonical_mrn(row.mrn)
        if mrn is None:
            continue
        residents[mrn] = _merge_resident(residents.get(mrn), row, mrn, now)
        if mrn not in seen:
            seen.append(mrn)

    result = ReconcileResult(updated_residents=residents)
    for mrn in seen:
        previous = existing.get(mrn)
        merged = residents[mrn]
        if previous is None:
            result.created.append(mrn)
            continue
        if not previous.active_on_census:
            result.reactivated.append(mrn)
        if _fields_changed(previous, merged):
            result.updated.append(mrn)
        else:
            result.unchanged.append(mrn)
        if previous.unit != merged.unit or previous.room != merged.room:
            result.location_changes.append(
                LocationChange(
                    mrn=mrn,
                    old_unit=previous.unit,
                    old_room=previous.room,
                    new_unit=merged.unit,
                    new_room=merged.room,
                )
            )

    seen_set = set(seen)
    for mrn, resident in residents.items():
        if mrn in seen_set or not resident.active_on_census:
            continue
        residents[mrn] = resident.model_copy(
            update={"active_on_census": False, "last_missing_census_at": now}
        )
        result.dropped_mrns.append(mrn)
    return result


def _merge_resident(
    previous: Resident | None, row: ImportRow, mrn: str, now: datetime
) -> Resident:
    values: dict[str, str] = {}
    for name in MERGE_FIELDS:
        incoming = (getattr(row, name) or "").strip()
        fallback = getattr(previous, name) if previous is not None else ""
        values[name] = incoming or fallback

    if previous is None:
        return Resident(
            id=f"res_{mrn}",
            mrn=mrn,
            active_on_census=True,
            last_seen_census_at=now,
            **values,
        )

    updates: dict[str, object] = {
        **values,
        "id": previous.id or f"res_{mrn}",
        "active_on_census": True,
        "last_seen_census_at": now,
    }
    if values["dob_raw"] != previous.dob_raw:
        updates["dob"] = iso_date_from_any(values["dob_raw"]) or previous.dob
    return previous.model_copy(update=updates)


def _fields_changed(previous: Resident, merged: Resident) -> bool:
    if previous.active_on_census != merged.active_on_census:
        return True
    return any(getattr(previous, name) != getattr(merged, name) for name in MERGE_FIELDS)
