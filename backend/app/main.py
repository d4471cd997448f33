import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.settings import settings, validate_settings
from app.db.session import engine
from app.models import Base
from app.routers.audit import router as audit_router
from app.routers.census import router as census_router
from app.routers.trackers import router as trackers_router

app = FastAPI(title="ICN Hub API", version="0.1.0")
logger = logging.getLogger("icn_hub.startup")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)
    logger.info(
        "Census engine ready (units: %s, duplicate MRNs: %s, auto-close grace: %s day(s)).",
        ", ".join(settings.unit_whitelist),
        settings.duplicate_mrn_severity,
        settings.auto_close_grace_days,
    )


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(census_router)
app.include_router(trackers_router)
app.include_router(audit_router)
