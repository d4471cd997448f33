from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from app.services.census.errors import DocumentStoreError
from app.services.census.identity import canonical_mrn
from app.services.census.types import Document

logger = logging.getLogger("icn_hub.store")

_OWNED_SECTIONS = {"census", "records", "audit_log", "settings"}
_OWNED_RECORDS = ("abx", "ip_cases", "vax")


def default_payload() -> dict[str, Any]:
    return {
        "census": {"residentsByMrn": {}, "meta": {"imported_at": None}},
        "records": {
            "abx": [],
            "ip_cases": [],
            "vax": [],
            "notes": [],
            "line_listings": [],
            "outbreaks": [],
            "contacts": [],
        },
        "audit_log": [],
        "settings": {},
    }


def document_from_payload(payload: dict[str, Any] | None) -> Document:
    payload = copy.deepcopy(payload) if payload else default_payload()
    if not isinstance(payload, dict):
        raise DocumentStoreError("Stored document must be a JSON object.")

    census = dict(payload.get("census") or {})
    raw_residents = census.pop("residentsByMrn", None) or {}
    meta = census.pop("meta", None) or {}
    residents: dict[str, dict[str, Any]] = {}
    for key, value in raw_residents.items():
        record = dict(value or {})
        mrn = canonical_mrn(record.get("mrn") or key)
        if mrn is None:
            logger.warning("Skipping stored resident with unusable MRN key %r", key)
            continue
        if mrn in residents:
            logger.warning("Stored residents collide on canonical MRN %s; keeping the later one", mrn)
        record["mrn"] = mrn
        residents[mrn] = record

    records = dict(payload.get("records") or {})
    owned = {name: records.pop(name, None) or [] for name in _OWNED_RECORDS}
    settings = dict(payload.get("settings") or {})
    last_import_at = settings.pop("last_import_at", None) or None

    other_sections = {
        key: value for key, value in payload.items() if key not in _OWNED_SECTIONS
    }
    if census:
        other_sections["census"] = census

    try:
        document = Document.model_validate(
            {
                "residents": residents,
                **owned,
                "audit_log": payload.get("audit_log") or [],
                "census_imported_at": meta.get("imported_at") or None,
                "last_import_at": last_import_at,
                "settings": settings,
                "other_records": records,
                "other_sections": other_sections,
            }
        )
    except ValidationError as exc:
        raise DocumentStoreError(f"Stored document failed validation: {exc}") from exc
    # browser-written logs are newest first; the engine appends oldest first
    document.audit_log.sort(key=_audit_order_key)
    return document


def _audit_order_key(entry) -> datetime:
    stamp = entry.timestamp
    return stamp if stamp.tzinfo is not None else stamp.replace(tzinfo=timezone.utc)


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def document_to_payload(document: Document) -> dict[str, Any]:
    payload = copy.deepcopy(document.other_sections)
    census = dict(payload.pop("census", None) or {})
    census["residentsByMrn"] = {
        mrn: resident.model_dump(mode="json") for mrn, resident in document.residents.items()
    }
    census["meta"] = {"imported_at": _iso(document.census_imported_at)}

    records = copy.deepcopy(document.other_records)
    records["abx"] = [episode.model_dump(mode="json") for episode in document.abx]
    records["ip_cases"] = [episode.model_dump(mode="json") for episode in document.ip_cases]
    records["vax"] = [episode.model_dump(mode="json") for episode in document.vax]

    settings = copy.deepcopy(document.settings)
    if document.last_import_at is not None:
        settings["last_import_at"] = _iso(document.last_import_at)

    payload.update(
        {
            "census": census,
            "records": records,
            "audit_log": [entry.model_dump(mode="json") for entry in document.audit_log],
            "settings": settings,
        }
    )
    return payload


class DocumentStore(Protocol):
    def load(self) -> Document:
        raise NotImplementedError

    def save(self, document: Document) -> None:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    def __init__(self, payload: dict[str, Any] | None = None) -> None:
        self.payload = copy.deepcopy(payload) if payload else default_payload()
        self.save_count = 0

    def load(self) -> Document:
        return document_from_payload(self.payload)

    def save(self, document: Document) -> None:
        self.payload = document_to_payload(document)
        self.save_count += 1


class JsonFileDocumentStore(DocumentStore):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Document:
        if not self.path.exists():
            return document_from_payload(None)
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else None
        except (OSError, ValueError) as exc:
            raise DocumentStoreError(f"Unable to read {self.path}: {exc}") from exc
        return document_from_payload(data)

    def save(self, document: Document) -> None:
        parent = self.path.parent
        if parent and not parent.exists():
            raise DocumentStoreError(f"Document directory does not exist: {parent}")
        data = json.dumps(document_to_payload(document), indent=2, sort_keys=True)
        tmp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                delete=False,
                dir=str(parent) if parent else None,
            ) as handle:
                handle.write(data)
                handle.write("\n")
                tmp_path = handle.name
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise DocumentStoreError(f"Unable to write {self.path}: {exc}") from exc
