from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from app.services.census.audit import (
    DISCHARGE_ACTIONS,
    ENTITY_TAGS,
    LOCATION_ACTIONS,
    AuditRecorder,
)
from app.services.census.errors import EpisodeNotFound
from app.services.census.identity import resolve_resident_key
from app.services.census.reconcile import LocationChange
from app.services.census.trackers import CloseReason, TrackerKind
from app.services.census.types import Document, TrackerEpisode

logger = logging.getLogger("icn_hub.discharge")

TRACKER_LABELS = {
    TrackerKind.abx: "ABT",
    TrackerKind.ip: "IP",
    TrackerKind.vax: "VAX",
}

AUTO_CLOSE_NOTE = "[Auto-closed: Resident discharged from census {day}]"
MANUAL_CLOSE_NOTE = "[Manual discharge: {day}]"


@dataclass
class DischargeResult:
    abx_closed: int = 0
    ip_closed: int = 0
    vax_closed: int = 0
    resident_names: list[str] = field(default_factory=list)

    @property
    def total_closed(self) -> int:
        return self.abx_closed + self.ip_closed + self.vax_closed

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def close_episode(
    episode: TrackerEpisode,
    *,
    now: datetime,
    reason: CloseReason,
    audit_id: str,
) -> None:
    target = episode.machine.discharge_target
    episode.machine.check(episode.status, target)
    day = now.date()
    episode.status = target
    episode.closed_at = now
    episode.close_reason = reason
    episode.discharge_audit_id = audit_id
    episode.mark_closed(day)
    template = AUTO_CLOSE_NOTE if reason is CloseReason.census_auto_discharge else MANUAL_CLOSE_NOTE
    episode.append_note(template.format(day=day.isoformat()))


def _owned_open_episodes(
    document: Document, kind: TrackerKind, owners: set[str]
) -> list[TrackerEpisode]:
    return [
        episode
        for episode in document.episodes(kind)
        if episode.is_open and resolve_resident_key(episode.mrn, document.residents) in owners
    ]


def auto_discharge(
    document: Document,
    dropped_mrns: Iterable[str],
    now: datetime,
    recorder: AuditRecorder,
) -> DischargeResult:
    dropped = set(dropped_mrns)
    result = DischargeResult()
    if not dropped:
        return result

    result.resident_names = [
        document.residents[mrn].name
        for mrn in sorted(dropped)
        if mrn in document.residents and document.residents[mrn].name
    ]
    for kind in TrackerKind:
        targets = _owned_open_episodes(document, kind, dropped)
        if not targets:
            continue
        label = TRACKER_LABELS[kind]
        owners = {resolve_resident_key(episode.mrn, document.residents) for episode in targets}
        entry = recorder.record(
            DISCHARGE_ACTIONS[kind],
            f"Auto-closed {len(targets)} {label} record(s) for {len(owners)} "
            "resident(s) dropped from census",
            ENTITY_TAGS[kind],
        )
        for episode in targets:
            close_episode(
                episode,
                now=now,
                reason=CloseReason.census_auto_discharge,
                audit_id=entry.id,
            )
        setattr(result, f"{kind.value}_closed", len(targets))
        logger.info("Auto-closed %s %s record(s) after census drop", len(targets), label)
    return result


def residents_past_grace(document: Document, now: datetime, grace_days: int) -> list[str]:
    cutoff = now - timedelta(days=max(grace_days, 0))
    return [
        mrn
        for mrn, resident in document.residents.items()
        if not resident.active_on_census
        and resident.last_missing_census_at is not None
        and resident.last_missing_census_at <= cutoff
    ]


def apply_location_changes(
    document: Document,
    changes: Iterable[LocationChange],
    recorder: AuditRecorder,
) -> dict[str, int]:
    by_mrn = {change.mrn: change for change in changes}
    counts = {kind.value: 0 for kind in TrackerKind}
    if not by_mrn:
        return counts

    for kind in TrackerKind:
        pending: list[tuple[TrackerEpisode, LocationChange]] = []
        for episode in document.episodes(kind):
            if not episode.is_open:
                continue
            change = by_mrn.get(resolve_resident_key(episode.mrn, document.residents))
            if change is None:
                continue
            if (episode.unit, episode.room) == (change.new_unit, change.new_room):
                continue
            pending.append((episode, change))
        if not pending:
            continue
        recorder.record(
            LOCATION_ACTIONS[kind],
            f"Updated unit/room on {len(pending)} {TRACKER_LABELS[kind]} record(s) "
            "after census location change",
            ENTITY_TAGS[kind],
        )
        for episode, change in pending:
            episode.unit = change.new_unit
            episode.room = change.new_room
        counts[kind.value] = len(pending)
    return counts


def discharge_episode(
    document: Document,
    kind: TrackerKind,
    episode_id: str,
    now: datetime,
    recorder: AuditRecorder,
) -> TrackerEpisode:
    episode = document.find_episode(kind, episode_id)
    if episode is None:
        raise EpisodeNotFound(kind.value, episode_id)
    episode.machine.check(episode.status, episode.machine.discharge_target)
    resident = resolve_resident_key(episode.mrn, document.residents)
    name = episode.resident_name or (
        document.residents[resident].name if resident else episode.mrn
    )
    entry = recorder.record(
        DISCHARGE_ACTIONS[kind],
        f"Manually discharged {TRACKER_LABELS[kind]} record for {name}",
        ENTITY_TAGS[kind],
    )
    close_episode(episode, now=now, reason=CloseReason.manual_discharge, audit_id=entry.id)
    return episode
