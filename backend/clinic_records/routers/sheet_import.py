from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from clinic_records.core.settings import settings
from clinic_records.db.session import get_db
from clinic_records.schemas.sheet_import import ImportPreviewOut, ImportResultOut, TemplateOut
from clinic_records.services.sheet_import.errors import ImportSetupError
from clinic_records.services.sheet_import.importer import import_sheet, preview_sheet
from clinic_records.services.sheet_import.store import SqlAlchemyStore
from clinic_records.services.sheet_import.templates import build_template_workbook, template_headers
from clinic_records.services.sheet_import.types import ImportKind
from clinic_records.services.sheet_import.workbook import read_grid

router = APIRouter(prefix="/imports", tags=["imports"])
logger = logging.getLogger("clinic_records.imports")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _read_upload(file: UploadFile, sheet: str | None):
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename required")
    content = file.file.read(settings.import_max_upload_bytes + 1)
    if len(content) > settings.import_max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Upload exceeds the import size limit",
        )
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty upload")
    try:
        return read_grid(content, filename=file.filename, sheet_name=sheet)
    except Exception as exc:
        logger.warning("Unreadable upload", extra={"upload_filename": file.filename, "error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Could not read spreadsheet: {exc}",
        )


@router.post("/{kind}", response_model=ImportResultOut | ImportPreviewOut)
def upload_import(
    kind: ImportKind,
    file: UploadFile = File(...),
    preview: bool = Query(default=False),
    sheet: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    sheet_name, grid = _read_upload(file, sheet)
    if preview:
        result = preview_sheet(kind, grid, sheet_name=sheet_name)
        return ImportPreviewOut.model_validate(result)
    try:
        result = import_sheet(SqlAlchemyStore(db), kind, grid, sheet_name=sheet_name)
    except ImportSetupError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return ImportResultOut.model_validate(result)


@router.get("/{kind}/template", response_model=TemplateOut)
def get_template(
    kind: ImportKind,
    output: str = Query(default="json", alias="format", pattern="^(json|xlsx)$"),
):
    if output == "xlsx":
        return Response(
            content=build_template_workbook(kind),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{kind.value}-template.xlsx"'},
        )
    return TemplateOut(kind=kind.value, headers=template_headers(kind))
