import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from clinic_records.core.settings import settings, validate_settings
from clinic_records.db.session import engine
from clinic_records.models import Base
from clinic_records.routers.sheet_import import router as sheet_import_router

app = FastAPI(title="Clinic Records API", version="0.1.0")
logger = logging.getLogger("clinic_records.startup")


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
    logger.info("Schema ensured (%s tables).", len(Base.metadata.tables))


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(sheet_import_router)
