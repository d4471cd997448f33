from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.deps import get_document_store, get_import_policy
from app.schemas.census import (
    CensusApplyOut,
    CensusApplyRequest,
    CensusPreviewOut,
    CensusPreviewRequest,
    ResidentOut,
)
from app.services.census.errors import AuditAppendError, CensusImportBlocked, DocumentStoreError
from app.services.census.importer import (
    CensusImportEmpty,
    ImportPolicy,
    apply_census_import,
    preview_census,
)
from app.services.census.parser import normalize_unit
from app.services.census.store import DocumentStore

router = APIRouter(prefix="/census", tags=["census"])


@router.post("/preview", response_model=CensusPreviewOut)
def preview(
    payload: CensusPreviewRequest,
    policy: ImportPolicy = Depends(get_import_policy),
):
    result = preview_census(payload.raw_text, policy)
    return CensusPreviewOut.model_validate(result, from_attributes=True)


@router.post("/apply", response_model=CensusApplyOut)
def apply(
    payload: CensusApplyRequest,
    store: DocumentStore = Depends(get_document_store),
    policy: ImportPolicy = Depends(get_import_policy),
):
    try:
        stats = apply_census_import(
            store,
            payload.raw_text,
            payload.selected_keys,
            allow_error_override=payload.allow_error_override,
            policy=policy,
            user=payload.user,
        )
    except CensusImportBlocked as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "error_keys": exc.error_keys},
        ) from exc
    except CensusImportEmpty as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except DocumentStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except AuditAppendError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Census not applied: {exc}",
        ) from exc
    return CensusApplyOut(**stats.as_dict())


@router.get("/residents", response_model=list[ResidentOut])
def list_residents(
    store: DocumentStore = Depends(get_document_store),
    active: bool | None = Query(default=None),
    unit: str | None = Query(default=None),
):
    try:
        document = store.load()
    except DocumentStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    residents = sorted(document.residents.values(), key=lambda resident: (resident.name, resident.mrn))
    if active is not None:
        residents = [resident for resident in residents if resident.active_on_census is active]
    if unit:
        wanted = normalize_unit(unit)
        residents = [resident for resident in residents if normalize_unit(resident.unit) == wanted]
    return residents
