from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime
from typing import Callable

from app.services.census.dates import utcnow
from app.services.census.errors import AuditAppendError
from app.services.census.trackers import TrackerKind
from app.services.census.types import AuditEntry, Document

logger = logging.getLogger("icn_hub.audit")


class AuditAction(str, enum.Enum):
    census_import = "census_import"
    abx_discharge = "abx_discharge"
    ip_discharge = "ip_discharge"
    vax_discharge = "vax_discharge"
    abx_location_update = "abx_location_update"
    ip_location_update = "ip_location_update"
    vax_location_update = "vax_location_update"


ENTITY_TAGS = {
    TrackerKind.abx: "abt",
    TrackerKind.ip: "ip",
    TrackerKind.vax: "vax",
}

DISCHARGE_ACTIONS = {
    TrackerKind.abx: AuditAction.abx_discharge,
    TrackerKind.ip: AuditAction.ip_discharge,
    TrackerKind.vax: AuditAction.vax_discharge,
}

LOCATION_ACTIONS = {
    TrackerKind.abx: AuditAction.abx_location_update,
    TrackerKind.ip: AuditAction.ip_location_update,
    TrackerKind.vax: AuditAction.vax_location_update,
}


class AuditRecorder:
    """Appends entries to a document's audit log.

    The log is growth-only: entries are frozen models and this class never
    rewrites or drops earlier ones. Any failure to append is raised as
    ``AuditAppendError`` so the caller can abandon the whole operation.
    """

    def __init__(
        self,
        document: Document,
        *,
        user: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.document = document
        self.user = user
        self.clock = clock
        self.recorded: list[AuditEntry] = []

    def record(
        self,
        action: AuditAction | str,
        details: str,
        entity_type: str,
    ) -> AuditEntry:
        try:
            action = AuditAction(action)
        except ValueError as exc:
            raise AuditAppendError(f"Unknown audit action: {action}") from exc
        if not details or not details.strip():
            raise AuditAppendError(f"Audit entry for {action.value} has no details")
        if not entity_type:
            raise AuditAppendError(f"Audit entry for {action.value} has no entity type")

        entry = AuditEntry(
            id=uuid.uuid4().hex,
            action=action.value,
            details=details.strip(),
            entity_type=entity_type,
            timestamp=self.clock(),
            user=self.user,
        )
        try:
            self.document.audit_log.append(entry)
        except (AttributeError, TypeError) as exc:
            raise AuditAppendError(f"Audit log is not appendable: {exc}") from exc
        self.recorded.append(entry)
        logger.info("Audit %s: %s", entry.action, entry.details)
        return entry
