from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.deps import get_document_store
from app.schemas.audit_log import AuditEntryOut
from app.services.census.errors import DocumentStoreError
from app.services.census.store import DocumentStore

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditEntryOut])
def list_audit(
    store: DocumentStore = Depends(get_document_store),
    entity_type: str | None = Query(default=None),
    action: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    try:
        document = store.load()
    except DocumentStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    entries = list(reversed(document.audit_log))
    if entity_type:
        entries = [entry for entry in entries if entry.entity_type == entity_type]
    if action:
        entries = [entry for entry in entries if entry.action == action]
    return entries[offset : offset + limit]
