import json
import sys

from clinic_records.scripts import sheet_import as sheet_import_script

CSV_ROWS = "الرقم الموحد,اسم المريض,القسم,تاريخ الحجز\n1001,أحمد علي محمد حسن,الكبد,05/01/2024 10:00\n"


def _write_csv(tmp_path, text=CSV_ROWS):
    path = tmp_path / "admissions.csv"
    path.write_text(text, encoding="utf-8")
    return path


def test_cli_imports_file(monkeypatch, capsys, tmp_path, session_factory, lookup_ids):
    path = _write_csv(tmp_path)
    stats_path = tmp_path / "stats.json"
    monkeypatch.setattr(sheet_import_script, "SessionLocal", session_factory)
    monkeypatch.setattr(
        sys,
        "argv",
        ["sheet_import.py", "--kind", "admissions", "--file", str(path), "--stats-out", str(stats_path)],
    )

    assert sheet_import_script.main() == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["inserted_counts"] == {"episode": 1}
    assert json.loads(stats_path.read_text(encoding="utf-8")) == payload


def test_cli_preview_does_not_open_a_session(monkeypatch, capsys, tmp_path):
    path = _write_csv(tmp_path)

    def _no_session():
        raise AssertionError("preview should not touch the database")

    monkeypatch.setattr(sheet_import_script, "SessionLocal", _no_session)
    monkeypatch.setattr(sys, "argv", ["sheet_import.py", "--kind", "admissions", "--file", str(path), "--preview"])

    assert sheet_import_script.main() == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["to_import"] == [0]
    assert payload["errors"] == []


def test_cli_missing_file(monkeypatch, capsys, tmp_path):
    monkeypatch.setattr(
        sys, "argv", ["sheet_import.py", "--kind", "admissions", "--file", str(tmp_path / "nope.xlsx")]
    )
    assert sheet_import_script.main() == 2
    assert "File not found" in capsys.readouterr().out


def test_cli_unreadable_file(monkeypatch, capsys, tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a workbook")
    monkeypatch.setattr(sys, "argv", ["sheet_import.py", "--kind", "admissions", "--file", str(path)])
    assert sheet_import_script.main() == 2
    assert "Could not read spreadsheet" in capsys.readouterr().out


def test_cli_setup_error_exits_2(monkeypatch, capsys, tmp_path, session_factory):
    path = _write_csv(tmp_path)
    monkeypatch.setattr(sheet_import_script, "SessionLocal", session_factory)
    monkeypatch.setattr(sys, "argv", ["sheet_import.py", "--kind", "admissions", "--file", str(path)])

    assert sheet_import_script.main() == 2
    assert "No departments" in capsys.readouterr().out


def test_cli_rejects_negative_progress(monkeypatch, capsys, tmp_path):
    path = _write_csv(tmp_path)
    monkeypatch.setattr(
        sys,
        "argv",
        ["sheet_import.py", "--kind", "admissions", "--file", str(path), "--progress-every", "-1"],
    )
    assert sheet_import_script.main() == 2


def test_cli_stats_dir_must_exist(monkeypatch, capsys, tmp_path):
    path = _write_csv(tmp_path)
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "sheet_import.py",
            "--kind",
            "admissions",
            "--file",
            str(path),
            "--preview",
            "--stats-out",
            str(tmp_path / "missing" / "stats.json"),
        ],
    )
    assert sheet_import_script.main() == 2
    assert "Stats output directory does not exist" in capsys.readouterr().out
