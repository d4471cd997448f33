from __future__ import annotations

import re

__all__ = ["canonical_mrn", "mrn_match_keys", "resolve_resident_key"]

_PAREN_RE = re.compile(r"\(([^)]+)\)")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_MAX_LEN = 20


def canonical_mrn(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = str(raw)
    match = _PAREN_RE.search(value)
    candidate = match.group(1) if match else value
    cleaned = _NON_ALNUM_RE.sub("", candidate).upper()[:_MAX_LEN]
    return cleaned or None


def mrn_match_keys(raw: str | None) -> list[str]:
    """Canonical key first, then its digits-only form when that differs.

    Tracker records are keyed by whatever MRN string the entry form saved, so
    lookups against the census compare on these keys rather than raw text.
    """
    canonical = canonical_mrn(raw)
    if canonical is None:
        return []
    keys = [canonical]
    digits = _NON_DIGIT_RE.sub("", canonical)
    if digits and digits != canonical:
        keys.append(digits)
    return keys


def resolve_resident_key(raw: str | None, known: set[str] | dict) -> str | None:
    for key in mrn_match_keys(raw):
        if key in known:
            return key
    return None
