from __future__ import annotations

import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import Any, Iterable, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from clinic_records.services.sheet_import.headers import canonicalize
from clinic_records.services.sheet_import.normalize import normalize_cell
from clinic_records.services.sheet_import.types import ParsedSheet, RowRecord

__all__ = ["parse_grid", "read_csv_grid", "read_grid", "read_workbook_grid"]

logger = logging.getLogger(__name__)

Grid = Sequence[Sequence[Any]]

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
TEXT_SUFFIXES = {".csv", ".tsv", ".txt"}


def parse_grid(grid: Iterable[Sequence[Any]], sheet_name: str | None = None) -> ParsedSheet:
    """Turn a raw worksheet grid into headers and row records.

    The first grid row holds the headers. Blank header cells are dropped
    together with their column. Each row record carries the raw cell under
    its header label and, when the label is recognized, also under its
    canonical field key (first column wins). Fully blank rows are skipped.
    """
    rows_iter = iter(grid)
    header_row = next(rows_iter, None) or []

    columns: list[tuple[int, str, str | None]] = []
    for position, cell in enumerate(header_row):
        label = normalize_cell(cell)
        if not label:
            continue
        columns.append((position, label, canonicalize(label)))

    headers = [label for _, label, _ in columns]
    records: list[RowRecord] = []
    for raw_row in rows_iter:
        raw_row = raw_row or ()
        record: RowRecord = {}
        has_value = False
        for position, label, key in columns:
            value = raw_row[position] if position < len(raw_row) else ""
            if value is None:
                value = ""
            if normalize_cell(value):
                has_value = True
            record.setdefault(label, value)
            if key is not None:
                record.setdefault(key, value)
        if not has_value:
            continue
        records.append(record)

    return ParsedSheet(headers=headers, rows=records, sheet_name=sheet_name)


def read_workbook_grid(
    source: str | Path | bytes,
    sheet_name: str | None = None,
) -> tuple[str, list[tuple[Any, ...]]]:
    """Read one worksheet (the first unless named) as a list of value rows."""
    handle = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        workbook = load_workbook(handle, read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError) as exc:
        raise ValueError(f"Not a readable workbook: {exc}") from exc
    try:
        if sheet_name is None:
            worksheet = workbook.worksheets[0]
        elif sheet_name in workbook.sheetnames:
            worksheet = workbook[sheet_name]
        else:
            raise ValueError(f"Worksheet not found: {sheet_name}")
        grid = [tuple(row) for row in worksheet.iter_rows(values_only=True)]
        logger.info(
            "Workbook sheet read",
            extra={"sheet_name": worksheet.title, "grid_rows": len(grid)},
        )
        return worksheet.title, grid
    finally:
        workbook.close()


def read_csv_grid(source: str | Path | bytes, delimiter: str | None = None) -> list[list[str]]:
    if isinstance(source, bytes):
        text = source.decode("utf-8-sig")
    else:
        text = Path(source).read_text(encoding="utf-8-sig")
    if delimiter is None:
        try:
            delimiter = csv.Sniffer().sniff(text[:4096], delimiters=",;\t").delimiter
        except csv.Error:
            delimiter = ","
    return [row for row in csv.reader(io.StringIO(text), delimiter=delimiter)]


def read_grid(
    source: str | Path | bytes,
    *,
    filename: str | None = None,
    sheet_name: str | None = None,
) -> tuple[str | None, list[Sequence[Any]]]:
    """Dispatch on file suffix to the workbook or CSV reader."""
    name = filename or (str(source) if not isinstance(source, bytes) else "")
    suffix = Path(name).suffix.lower()
    if suffix in TEXT_SUFFIXES:
        return None, read_csv_grid(source, delimiter="\t" if suffix == ".tsv" else None)
    if suffix and suffix not in EXCEL_SUFFIXES:
        raise ValueError(f"Unsupported file type: {suffix}")
    title, grid = read_workbook_grid(source, sheet_name=sheet_name)
    return title, grid
