from __future__ import annotations

import argparse
import json
import os
import tempfile
from pathlib import Path

from clinic_records.db.session import SessionLocal
from clinic_records.services.sheet_import.errors import ImportSetupError
from clinic_records.services.sheet_import.importer import import_sheet, preview_sheet
from clinic_records.services.sheet_import.store import SqlAlchemyStore
from clinic_records.services.sheet_import.types import ImportKind
from clinic_records.services.sheet_import.workbook import read_grid


def _write_stats_file(path: str, payload: dict[str, object]) -> None:
    target = Path(path)
    parent = target.parent
    if parent and not parent.exists():
        raise RuntimeError(f"Stats output directory does not exist: {parent}")
    data = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        delete=False,
        dir=str(parent) if parent else None,
    ) as handle:
        handle.write(data)
        handle.write("\n")
        tmp_path = handle.name
    os.replace(tmp_path, target)


def main() -> int:
    parser = argparse.ArgumentParser(description="Import a clinic spreadsheet into the records store.")
    parser.add_argument(
        "--kind",
        required=True,
        choices=[kind.value for kind in ImportKind],
        help="Sheet type to import.",
    )
    parser.add_argument("--file", required=True, help="Path to an .xlsx or .csv file.")
    parser.add_argument("--sheet", default=None, help="Worksheet name (default: first sheet).")
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Validate rows and report duplicates without writing anything.",
    )
    parser.add_argument(
        "--stats-out",
        dest="stats_out",
        default=None,
        help="Write the JSON result to this path as well as stdout.",
    )
    parser.add_argument(
        "--progress-every",
        type=int,
        default=None,
        help="Emit a JSON checkpoint line every N rows.",
    )
    args = parser.parse_args()

    if args.progress_every is not None and args.progress_every < 0:
        print("--progress-every cannot be negative.")
        return 2
    if not Path(args.file).is_file():
        print(f"File not found: {args.file}")
        return 2
    try:
        sheet_name, grid = read_grid(args.file, sheet_name=args.sheet)
    except (ValueError, OSError) as exc:
        print(f"Could not read spreadsheet: {exc}")
        return 2

    if args.preview:
        payload = preview_sheet(args.kind, grid, sheet_name=sheet_name).as_dict()
    else:
        session = SessionLocal()
        try:
            result = import_sheet(
                SqlAlchemyStore(session),
                args.kind,
                grid,
                sheet_name=sheet_name,
                progress_every=args.progress_every,
            )
        except ImportSetupError as exc:
            print(str(exc))
            return 2
        finally:
            session.close()
        payload = result.as_dict()

    if args.stats_out:
        try:
            _write_stats_file(args.stats_out, payload)
        except RuntimeError as exc:
            print(str(exc))
            return 2
    print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
