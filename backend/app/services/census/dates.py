from __future__ import annotations

import re
from datetime import date, datetime, timezone

__all__ = ["iso_date_from_any", "utcnow"]

_MONTHS = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "sept": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}

_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:T.*)?$")
_COMPACT_YMD_RE = re.compile(r"^\d{8}$")
_COMPACT_MDY_RE = re.compile(r"^\d{6,8}$")
_YMD_RE = re.compile(r"\b(\d{4})[/\-.\s](\d{1,2})[/\-.\s](\d{1,2})\b")
_MDY_RE = re.compile(r"\b(\d{1,2})[/\-.\s](\d{1,2})[/\-.\s](\d{2,4})\b")
_MONTH_FIRST_RE = re.compile(r"\b([a-z]+)[,.\s]+(\d{1,2})[,.\s]+(\d{2,4})\b", re.IGNORECASE)
_DAY_FIRST_RE = re.compile(r"\b(\d{1,2})[/\-.\s]+([a-z]+)[/\-.\s]+(\d{2,4})\b", re.IGNORECASE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _build(year: int, month: int | None, day: int) -> date | None:
    if month is None:
        return None
    if year < 100:
        year += 2000
    if not 1900 <= year <= 2100:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def iso_date_from_any(value: str | date | datetime | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip().strip(":").strip()
    if not text:
        return None

    match = _ISO_RE.match(text)
    if match:
        return _build(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    if _COMPACT_YMD_RE.match(text):
        parsed = _build(int(text[:4]), int(text[4:6]), int(text[6:8]))
        if parsed:
            return parsed
    if _COMPACT_MDY_RE.match(text):
        parsed = _build(int(text[4:]), int(text[:2]), int(text[2:4]))
        if parsed:
            return parsed

    match = _YMD_RE.search(text)
    if match:
        parsed = _build(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed

    match = _MDY_RE.search(text)
    if match:
        parsed = _build(int(match.group(3)), int(match.group(1)), int(match.group(2)))
        if parsed:
            return parsed

    match = _MONTH_FIRST_RE.search(text)
    if match:
        parsed = _build(
            int(match.group(3)), _MONTHS.get(match.group(1).lower()), int(match.group(2))
        )
        if parsed:
            return parsed

    match = _DAY_FIRST_RE.search(text)
    if match:
        parsed = _build(
            int(match.group(3)), _MONTHS.get(match.group(2).lower()), int(match.group(1))
        )
        if parsed:
            return parsed

    return None
