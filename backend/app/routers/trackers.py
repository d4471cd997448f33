from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.deps import get_document_store
from app.schemas.tracker import TrackerDischargeRequest, TrackerEpisodeOut
from app.services.census.audit import AuditRecorder
from app.services.census.dates import utcnow
from app.services.census.discharge import discharge_episode
from app.services.census.errors import (
    AuditAppendError,
    DocumentStoreError,
    EpisodeNotFound,
    InvalidStatusTransition,
)
from app.services.census.identity import canonical_mrn
from app.services.census.store import DocumentStore
from app.services.census.trackers import TrackerKind
from app.services.census.types import TrackerEpisode

router = APIRouter(prefix="/trackers", tags=["trackers"])


def _episode_out(episode: TrackerEpisode) -> TrackerEpisodeOut:
    return TrackerEpisodeOut(
        id=episode.id,
        kind=episode.kind.value,
        mrn=episode.mrn,
        resident_name=episode.resident_name,
        unit=episode.unit,
        room=episode.room,
        status=episode.status.value,
        notes=episode.notes,
        closed_at=episode.closed_at,
        close_reason=episode.close_reason.value if episode.close_reason else None,
        discharge_audit_id=episode.discharge_audit_id,
    )


def _load(store: DocumentStore):
    try:
        return store.load()
    except DocumentStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/{kind}", response_model=list[TrackerEpisodeOut])
def list_episodes(
    kind: TrackerKind,
    store: DocumentStore = Depends(get_document_store),
    open_only: bool = Query(default=False),
    mrn: str | None = Query(default=None),
):
    document = _load(store)
    episodes = document.episodes(kind)
    if open_only:
        episodes = [episode for episode in episodes if episode.is_open]
    if mrn:
        wanted = canonical_mrn(mrn)
        episodes = [
            episode
            for episode in episodes
            if wanted is not None and canonical_mrn(episode.mrn) == wanted
        ]
    return [_episode_out(episode) for episode in episodes]


@router.post("/{kind}/{episode_id}/discharge", response_model=TrackerEpisodeOut)
def discharge(
    kind: TrackerKind,
    episode_id: str,
    payload: TrackerDischargeRequest | None = None,
    store: DocumentStore = Depends(get_document_store),
):
    document = _load(store)
    now = utcnow()
    recorder = AuditRecorder(document, user=payload.user if payload else None, clock=lambda: now)
    try:
        episode = discharge_episode(document, kind, episode_id, now, recorder)
        store.save(document)
    except EpisodeNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except DocumentStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except AuditAppendError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Discharge not applied: {exc}",
        ) from exc
    return _episode_out(episode)
