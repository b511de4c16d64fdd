from clinic_records.services.sheet_import.dedupe import KEY_SEPARATOR, build_exact_row_key, dedupe_exact_rows
from clinic_records.services.sheet_import.types import DuplicateRow

HEADERS = ["الرقم الموحد", "اسم المريض"]


def _row(unified, name):
    return {"الرقم الموحد": unified, "اسم المريض": name}


def test_row_key_uses_display_normalization():
    assert build_exact_row_key(HEADERS, _row(1001.0, "  أحمد   علي ")) == f"1001{KEY_SEPARATOR}أحمد علي"
    assert build_exact_row_key(HEADERS, {}) == KEY_SEPARATOR


def test_first_occurrence_wins():
    rows = [_row("1", "a"), _row("2", "b"), _row("1", "a"), _row(1, " a ")]
    result = dedupe_exact_rows(HEADERS, rows)

    assert [index for index, _ in result.unique] == [0, 1]
    assert result.duplicates == [
        DuplicateRow(row_index=2, first_index=0),
        DuplicateRow(row_index=3, first_index=0),
    ]


def test_triplicate_reports_two_repeats_of_the_first():
    rows = [_row("7", "x")] * 3
    result = dedupe_exact_rows(HEADERS, rows)

    assert len(result.unique) == 1
    assert [dup.first_index for dup in result.duplicates] == [0, 0]


def test_partition_covers_every_row():
    rows = [_row(str(i % 3), "n") for i in range(10)]
    result = dedupe_exact_rows(HEADERS, rows)

    indexes = sorted([index for index, _ in result.unique] + [dup.row_index for dup in result.duplicates])
    assert indexes == list(range(10))


def test_letter_form_variants_are_not_duplicates():
    rows = [_row("1", "أحمد"), _row("1", "احمد")]
    result = dedupe_exact_rows(HEADERS, rows)
    assert len(result.unique) == 2
    assert result.duplicates == []
