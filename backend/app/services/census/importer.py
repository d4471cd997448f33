from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Iterable

from app.services.census.audit import AuditAction, AuditRecorder
from app.services.census.dates import utcnow
from app.services.census.discharge import (
    DischargeResult,
    apply_location_changes,
    auto_discharge,
    residents_past_grace,
)
from app.services.census.errors import CensusImportBlocked, CensusImportError
from app.services.census.parser import DEFAULT_VALID_UNITS, parse_census_text
from app.services.census.reconcile import ReconcileResult, reconcile
from app.services.census.store import DocumentStore
from app.services.census.types import Document, ImportRow, ValidationStatus
from app.services.census.validator import (
    DuplicateSeverity,
    ValidationSummary,
    default_selection,
    summarize_validation,
    validate_rows,
)

logger = logging.getLogger("icn_hub.census")


class CensusImportEmpty(CensusImportError):
    pass


@dataclass(frozen=True)
class ImportPolicy:
    valid_units: tuple[str, ...] = DEFAULT_VALID_UNITS
    duplicate_severity: DuplicateSeverity = DuplicateSeverity.warning
    auto_close_on_census_drop: bool = True
    auto_close_grace_days: int = 0

    @classmethod
    def from_settings(cls, settings) -> "ImportPolicy":
        return cls(
            valid_units=tuple(settings.unit_whitelist),
            duplicate_severity=DuplicateSeverity(settings.duplicate_mrn_severity),
            auto_close_on_census_drop=settings.auto_close_on_census_drop,
            auto_close_grace_days=settings.auto_close_grace_days,
        )


@dataclass
class CensusPreview:
    rows: list[ImportRow]
    default_selected: list[str]
    summary: ValidationSummary


@dataclass
class CensusImportStats:
    rows_selected: int = 0
    residents_created: int = 0
    residents_updated: int = 0
    residents_unchanged: int = 0
    residents_reactivated: int = 0
    residents_dropped: int = 0
    location_changes: int = 0
    tracker_locations_updated: int = 0
    abx_closed: int = 0
    ip_closed: int = 0
    vax_closed: int = 0
    duplicate_mrns: list[str] = field(default_factory=list)
    audit_ids: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["message"] = self.summary_message()
        return data

    def summary_message(self) -> str:
        message = f"Imported {self.rows_selected} residents"
        if self.residents_dropped:
            message += f", {self.residents_dropped} discharged"
        closed = [
            f"{count} {label}"
            for count, label in (
                (self.abx_closed, "ABT"),
                (self.ip_closed, "IP"),
                (self.vax_closed, "VAX"),
            )
            if count
        ]
        if closed:
            message += f" (auto-closed: {', '.join(closed)})"
        if self.duplicate_mrns:
            message += f". Duplicate MRNs in pasted census: {', '.join(self.duplicate_mrns)}"
        return message


def preview_census(raw_text: str | None, policy: ImportPolicy | None = None) -> CensusPreview:
    policy = policy or ImportPolicy()
    rows = validate_rows(
        parse_census_text(raw_text, policy.valid_units),
        valid_units=policy.valid_units,
        duplicate_severity=policy.duplicate_severity,
    )
    summary = summarize_validation(rows)
    if summary.duplicate_mrns:
        logger.warning("Duplicate MRNs in census batch: %s", ", ".join(summary.duplicate_mrns))
    return CensusPreview(rows=rows, default_selected=default_selection(rows), summary=summary)


def select_rows(
    rows: list[ImportRow],
    selected_keys: Iterable[str],
    allow_error_override: bool = False,
) -> list[ImportRow]:
    keys = set(selected_keys)
    chosen = [row for row in rows if row.key in keys]
    blocked = [row.key for row in chosen if row.validation.status is ValidationStatus.error]
    if blocked and not allow_error_override:
        raise CensusImportBlocked(blocked)
    return chosen


def _residents_to_close(
    document: Document, result: ReconcileResult, now: datetime, policy: ImportPolicy
) -> list[str]:
    if not policy.auto_close_on_census_drop:
        return []
    if policy.auto_close_grace_days <= 0:
        return list(result.dropped_mrns)
    return residents_past_grace(document, now, policy.auto_close_grace_days)


def reconcile_document(
    document: Document,
    rows: list[ImportRow],
    now: datetime,
    recorder: AuditRecorder,
    policy: ImportPolicy | None = None,
) -> tuple[ReconcileResult, DischargeResult, dict[str, int]]:
    policy = policy or ImportPolicy()
    result = reconcile(document.residents, rows, now)
    document.residents = result.updated_residents
    discharged = auto_discharge(
        document, _residents_to_close(document, result, now, policy), now, recorder
    )
    moved = apply_location_changes(document, result.location_changes, recorder)
    document.census_imported_at = now
    document.last_import_at = now
    recorder.record(
        AuditAction.census_import,
        f"Census imported: {len(rows)} residents, {len(result.dropped_mrns)} marked inactive",
        "census",
    )
    return result, discharged, moved


def apply_census_import(
    store: DocumentStore,
    raw_text: str | None,
    selected_keys: Iterable[str] | None = None,
    *,
    allow_error_override: bool = False,
    now: datetime | None = None,
    policy: ImportPolicy | None = None,
    user: str | None = None,
) -> CensusImportStats:
    now = now or utcnow()
    policy = policy or ImportPolicy()
    preview = preview_census(raw_text, policy)
    keys = preview.default_selected if selected_keys is None else selected_keys
    rows = select_rows(preview.rows, keys, allow_error_override)
    if not any(row.mrn for row in rows):
        raise CensusImportEmpty(
            "No census rows with a usable MRN were selected; refusing to mark every resident inactive."
        )

    document = store.load()
    recorder = AuditRecorder(document, user=user, clock=lambda: now)
    result, discharged, moved = reconcile_document(document, rows, now, recorder, policy)
    store.save(document)

    stats = CensusImportStats(
        rows_selected=len(rows),
        residents_created=len(result.created),
        residents_updated=len(result.updated),
        residents_unchanged=len(result.unchanged),
        residents_reactivated=len(result.reactivated),
        residents_dropped=len(result.dropped_mrns),
        location_changes=len(result.location_changes),
        tracker_locations_updated=sum(moved.values()),
        abx_closed=discharged.abx_closed,
        ip_closed=discharged.ip_closed,
        vax_closed=discharged.vax_closed,
        duplicate_mrns=list(preview.summary.duplicate_mrns),
        audit_ids=[entry.id for entry in recorder.recorded],
    )
    logger.info("Census import applied: %s", stats.summary_message())
    return stats
