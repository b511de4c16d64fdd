from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable, Sequence

from clinic_records.core.settings import Settings, settings as default_settings
from clinic_records.services.sheet_import.context import ReconciliationContext
from clinic_records.services.sheet_import.dedupe import dedupe_exact_rows
from clinic_records.services.sheet_import.pipelines.admissions import AdmissionsPipeline
from clinic_records.services.sheet_import.pipelines.base import ReconciliationPipeline
from clinic_records.services.sheet_import.pipelines.discharges import DischargesPipeline
from clinic_records.services.sheet_import.pipelines.services import ServicesPipeline
from clinic_records.services.sheet_import.store import RecordStore
from clinic_records.services.sheet_import.types import ImportKind, ImportPreview, ImportResult
from clinic_records.services.sheet_import.workbook import parse_grid

logger = logging.getLogger("clinic_records.imports")

PIPELINES: dict[ImportKind, type[ReconciliationPipeline]] = {
    ImportKind.admissions: AdmissionsPipeline,
    ImportKind.discharges: DischargesPipeline,
    ImportKind.services: ServicesPipeline,
}


def import_sheet(
    store: RecordStore,
    kind: ImportKind | str,
    grid: Iterable[Sequence[Any]],
    *,
    settings: Settings | None = None,
    context: ReconciliationContext | None = None,
    sheet_name: str | None = None,
    progress_every: int | None = None,
) -> ImportResult:
    """Parse, dedupe and reconcile one worksheet against the store.

    Row failures are reported in the result. Only setup problems (reference
    tables unreadable, no default department) raise ``ImportSetupError``.
    """
    kind = ImportKind(kind)
    settings = settings or default_settings
    if progress_every is None:
        progress_every = settings.import_progress_every

    sheet = parse_grid(grid, sheet_name=sheet_name)
    split = dedupe_exact_rows(sheet.headers, sheet.rows)
    if context is None:
        context = ReconciliationContext.load(store, settings)

    pipeline = PIPELINES[kind](store, context)
    processed = 0

    def _on_row(row_index: int) -> None:
        nonlocal processed
        processed += 1
        _maybe_emit_checkpoint(kind, processed, row_index, progress_every)

    result = pipeline.run(split.unique, on_row=_on_row)
    result.total_rows = len(sheet.rows)
    result.duplicates = list(split.duplicates)
    logger.info(
        "Sheet import finished",
        extra={
            "import_kind": kind.value,
            "sheet_name": sheet.sheet_name,
            "total_rows": result.total_rows,
            "duplicates": len(result.duplicates),
            "failed": len(result.failed),
            "inserted": result.inserted_counts,
            "updated": result.updated_counts,
        },
    )
    return result


def preview_sheet(
    kind: ImportKind | str,
    grid: Iterable[Sequence[Any]],
    *,
    settings: Settings | None = None,
    sheet_name: str | None = None,
) -> ImportPreview:
    """Dry run: parse, dedupe and validate rows without touching the store."""
    kind = ImportKind(kind)
    settings = settings or default_settings
    sheet = parse_grid(grid, sheet_name=sheet_name)
    split = dedupe_exact_rows(sheet.headers, sheet.rows)
    pipeline = PIPELINES[kind](store=None, context=ReconciliationContext(settings=settings))

    preview = ImportPreview(kind=kind.value, headers=list(sheet.headers), duplicates=list(split.duplicates))
    for row_index, record in split.unique:
        failure = pipeline.preview(row_index, record)
        if failure is None:
            preview.to_import.append(row_index)
        else:
            preview.errors.append(failure)
    return preview


def _maybe_emit_checkpoint(kind: ImportKind, processed: int, row_index: int, progress_every: int | None) -> None:
    if not progress_every or progress_every <= 0:
        return
    if processed % progress_every != 0:
        return
    payload = {
        "event": "sheet_import_checkpoint",
        "import_kind": kind.value,
        "processed": processed,
        "last_row_index": row_index,
        "timestamp": round(time.time(), 3),
    }
    print(json.dumps(payload, sort_keys=True))
