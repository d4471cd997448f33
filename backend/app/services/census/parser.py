from __future__ import annotations

import re
from typing import Iterable

from app.services.census.identity import canonical_mrn
from app.services.census.types import ImportRow

DEFAULT_VALID_UNITS = ("Unit 2", "Unit 3", "Unit 4")

_NON_RESIDENT_NAMES = {
    "MEDICAREONLY",
    "CONTINUED",
    "DISCHARGED",
    "HOSPITAL",
    "BEDCERTIFICATION",
    "CERTIFICATION",
    "ALL",
    "UNIT",
    "MEDICARE",
}

_EMPTY_RE = re.compile(r"EMPTY", re.IGNORECASE)
_MRN_PAREN_RE = re.compile(r"\(([^)]*)\)")
_MRN_LABEL_RE = re.compile(r"\bMRN\s*[:#]?\s*([A-Za-z0-9][A-Za-z0-9-]*)", re.IGNORECASE)
_DOB_RE = re.compile(r"\b(\d{1,2}/\d{1,2}/\d{2,4})\b")
_ROOM_RE = re.compile(r"^\d{1,4}(?:-?[A-Za-z])?$")
_UNIT_WORD_RE = re.compile(r"^unit$", re.IGNORECASE)
_UNIT_PREFIX_RE = re.compile(r"^unit\s*", re.IGNORECASE)
_TRAILING_DASH_RE = re.compile(r"[-–—]\s*$")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_unit(value: str | None) -> str:
    cleaned = _WHITESPACE_RE.sub(" ", (value or "").strip())
    if not cleaned:
        return ""
    designator = _UNIT_PREFIX_RE.sub("", cleaned).strip()
    if not designator:
        return cleaned
    return f"Unit {designator.upper()}"


def canonical_unit(value: str | None, valid_units: Iterable[str] = DEFAULT_VALID_UNITS) -> str:
    normalized = normalize_unit(value).lower()
    if not normalized:
        return ""
    for unit in valid_units:
        if normalize_unit(unit).lower() == normalized:
            return unit
    return ""


def is_valid_unit(value: str | None, valid_units: Iterable[str] = DEFAULT_VALID_UNITS) -> bool:
    return bool(canonical_unit(value, valid_units))


def derive_unit_from_room(
    room: str | None, valid_units: Iterable[str] = DEFAULT_VALID_UNITS
) -> str:
    cleaned = (room or "").strip()
    if not cleaned or not cleaned[0].isdigit():
        return ""
    return canonical_unit(cleaned[0], valid_units)


def parse_resident_name(raw: str | None) -> str:
    name = (raw or "").strip()
    if not name:
        return ""
    if "," in name:
        return _TRAILING_DASH_RE.sub("", name).strip()
    tokens = name.split()
    if len(tokens) == 1:
        return tokens[0]
    return f"{tokens[-1]}, {' '.join(tokens[:-1])}"


def _find_mrn(line: str) -> tuple[str, int, int] | None:
    match = _MRN_PAREN_RE.search(line)
    if match is None:
        match = _MRN_LABEL_RE.search(line)
    if match is None:
        return None
    return match.group(1), match.start(), match.end()


def _split_location(
    before: str, valid_units: tuple[str, ...]
) -> tuple[str, str, str]:
    tokens = before.split()
    unit = ""
    room = ""
    name_part = before
    if len(tokens) < 2:
        return unit, room, name_part

    first = tokens[0]
    if _UNIT_WORD_RE.match(first) and len(tokens) >= 3:
        unit = f"Unit {tokens[1]}"
        if len(tokens) >= 4 and _ROOM_RE.match(tokens[2]):
            room = tokens[2]
            name_part = " ".join(tokens[3:])
        else:
            name_part = " ".join(tokens[2:])
    elif (
        len(tokens) >= 3
        and is_valid_unit(first, valid_units)
        and _ROOM_RE.match(tokens[1])
    ):
        unit = first
        room = tokens[1]
        name_part = " ".join(tokens[2:])
    elif _ROOM_RE.match(first):
        room = first
        name_part = " ".join(tokens[1:])
    elif len(tokens) >= 3:
        unit = first
        room = tokens[1]
        name_part = " ".join(tokens[2:])

    resolved = canonical_unit(unit, valid_units) or derive_unit_from_room(room, valid_units)
    return resolved or unit, room, name_part


def parse_census_text(
    raw: str | None, valid_units: Iterable[str] = DEFAULT_VALID_UNITS
) -> list[ImportRow]:
    units = tuple(valid_units)
    rows: list[ImportRow] = []
    for line_no, line in enumerate((raw or "").splitlines(), start=1):
        text = line.strip()
        if not text or _EMPTY_RE.search(text):
            continue
        found = _find_mrn(text)
        if found is None:
            continue
        mrn_token, start, end = found

        unit, room, name_part = _split_location(text[:start].strip(), units)
        name = parse_resident_name(name_part)

        after = text[end:].strip()
        dob_match = _DOB_RE.search(after)
        dob_raw = dob_match.group(1) if dob_match else ""

        compact_name = re.sub(r"[\s,]", "", name_part).upper()
        if compact_name in _NON_RESIDENT_NAMES and not room and not dob_raw:
            continue

        rest = after.replace(dob_raw, "", 1).split() if dob_raw else after.split()
        rows.append(
            ImportRow(
                key=f"row-{line_no}",
                line_no=line_no,
                mrn=canonical_mrn(mrn_token) or "",
                name=name,
                unit=unit,
                room=room,
                dob_raw=dob_raw,
                status=" ".join(rest[:2]),
                payor=" ".join(rest[2:]),
            )
        )
    return rows
