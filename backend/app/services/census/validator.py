from __future__ import annotations

import enum
import re
from dataclasses import asdict, dataclass, field
from typing import Callable, Iterable

from app.services.census.parser import DEFAULT_VALID_UNITS, is_valid_unit
from app.services.census.types import ImportRow, RowValidation, ValidationStatus

_MRN_DIGIT_RE = re.compile(r"\d")


class DuplicateSeverity(str, enum.Enum):
    warning = "warning"
    error = "error"


@dataclass
class ValidationSummary:
    total: int = 0
    valid: int = 0
    warnings: int = 0
    errors: int = 0
    duplicate_mrns: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def find_duplicate_keys(
    rows: Iterable[ImportRow],
    qualifies: Callable[[ImportRow], bool] | None = None,
) -> set[str]:
    """Keys of every row that repeats an MRN already claimed by another row.

    Per MRN the first row that ``qualifies`` is kept as the original, falling
    back to the first row when none does. Without ``qualifies`` the first
    occurrence wins.
    """
    by_mrn: dict[str, list[ImportRow]] = {}
    for row in rows:
        if row.mrn:
            by_mrn.setdefault(row.mrn, []).append(row)
    duplicates: set[str] = set()
    for group in by_mrn.values():
        original = next(
            (row for row in group if qualifies is None or qualifies(row)), group[0]
        )
        duplicates.update(row.key for row in group if row is not original)
    return duplicates


def validate_row(
    row: ImportRow,
    *,
    duplicate: bool = False,
    valid_units: Iterable[str] = DEFAULT_VALID_UNITS,
    duplicate_severity: DuplicateSeverity = DuplicateSeverity.warning,
) -> RowValidation:
    errors: list[str] = []
    warnings: list[str] = []

    if not row.mrn:
        errors.append("Missing MRN")
    elif not _MRN_DIGIT_RE.search(row.mrn):
        errors.append(f"Malformed MRN: {row.mrn}")

    if not row.unit.strip():
        errors.append("Missing unit")
    elif not is_valid_unit(row.unit, valid_units):
        errors.append(f"Invalid unit: {row.unit}")

    if not row.room.strip():
        warnings.append("Missing room")
    if not row.name.strip():
        warnings.append("Missing name")
    if not row.dob_raw.strip():
        warnings.append("Missing DOB")

    if duplicate:
        message = f"Duplicate MRN in batch: {row.mrn}"
        if duplicate_severity is DuplicateSeverity.error:
            errors.append(message)
        else:
            warnings.append(message)

    if errors:
        status = ValidationStatus.error
    elif warnings:
        status = ValidationStatus.warning
    else:
        status = ValidationStatus.valid
    return RowValidation(status=status, issues=errors + warnings, duplicate=duplicate)


def validate_rows(
    rows: list[ImportRow],
    valid_units: Iterable[str] = DEFAULT_VALID_UNITS,
    duplicate_severity: DuplicateSeverity | str = DuplicateSeverity.warning,
) -> list[ImportRow]:
    severity = DuplicateSeverity(duplicate_severity)
    units = tuple(valid_units)
    base = {
        row.key: validate_row(row, valid_units=units, duplicate_severity=severity)
        for row in rows
    }
    duplicate_keys = find_duplicate_keys(
        rows, qualifies=lambda row: _is_selectable(row, base[row.key])
    )
    return [
        row.model_copy(
            update={
                "validation": validate_row(
                    row,
                    duplicate=row.key in duplicate_keys,
                    valid_units=units,
                    duplicate_severity=severity,
                )
            }
        )
        for row in rows
    ]


def _is_selectable(row: ImportRow, validation: RowValidation) -> bool:
    if validation.status is ValidationStatus.error:
        return False
    return bool(row.room.strip() or row.dob_raw.strip())


def is_selected_by_default(row: ImportRow) -> bool:
    return not row.validation.duplicate and _is_selectable(row, row.validation)


def default_selection(rows: Iterable[ImportRow]) -> list[str]:
    return [row.key for row in rows if is_selected_by_default(row)]


def summarize_validation(rows: Iterable[ImportRow]) -> ValidationSummary:
    summary = ValidationSummary()
    duplicate_mrns: list[str] = []
    for row in rows:
        summary.total += 1
        status = row.validation.status
        if status is ValidationStatus.valid:
            summary.valid += 1
        elif status is ValidationStatus.warning:
            summary.warnings += 1
        else:
            summary.errors += 1
        if row.validation.duplicate and row.mrn not in duplicate_mrns:
            duplicate_mrns.append(row.mrn)
    summary.duplicate_mrns = duplicate_mrns
    return summary
