"""Cell and text normalization for spreadsheet imports.

Two layers:

- ``normalize_cell`` canonicalizes a raw cell into the display string that is
  validated and persisted (numbers de-exponentiated, markup stripped,
  whitespace collapsed).
- ``normalize_for_match`` builds on it for comparison keys only: diacritics,
  Arabic letter-form variants, numeral scripts and case are folded so that
  two spellings of the same name compare equal. It is never persisted.
"""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation

__all__ = [
    "combine_date_time",
    "digits_only",
    "normalize_cell",
    "normalize_for_match",
    "parse_digits",
    "parse_int",
    "parse_timestamp",
    "strip_html",
]

_WHITESPACE_RE = re.compile(r"\s+", re.UNICODE)
_TAG_RE = re.compile(r"<[^>]*>")
_EXPONENT_RE = re.compile(r"e\+?\d+$", re.IGNORECASE)
_NON_DIGIT_RE = re.compile(r"\D")
_WHOLE_DECIMAL_RE = re.compile(r"^(\d+)\.0+$")

_TATWEEL = "\u0640"
_ARABIC_MARKS_RE = re.compile(r"[\u064B-\u065F\u0670\u06D6-\u06ED]")

_LETTER_FORMS = str.maketrans(
    {
        "إ": "ا",  # alef with hamza below
        "أ": "ا",  # alef with hamza above
        "آ": "ا",  # alef with madda
        "ٱ": "ا",  # alef wasla
        "ى": "ي",  # alef maksura
        "ؤ": "و",  # waw with hamza
        "ئ": "ي",  # yeh with hamza
        "ة": "ه",  # teh marbuta
        "ی": "ي",  # farsi yeh
        "ک": "ك",  # keheh
    }
)

_DIGITS = str.maketrans(
    {
        **{chr(0x0660 + offset): str(offset) for offset in range(10)},
        **{chr(0x06F0 + offset): str(offset) for offset in range(10)},
    }
)

_EXCEL_EPOCH = datetime(1899, 12, 30)
_EXCEL_SERIAL_MIN = 20000
_EXCEL_SERIAL_MAX = 80000

_DAY_FIRST_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y %H:%M",
    "%d-%m-%Y",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)


def strip_html(value: str) -> str:
    return _TAG_RE.sub(" ", value)


def _collapse(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value).strip()


def _number_to_text(value: int | float | Decimal) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        return ""
    if isinstance(value, Decimal) and not value.is_finite():
        return ""
    return str(int(value))


def _temporal_to_text(value: date | time) -> str:
    if isinstance(value, datetime):
        if value.second == 0 and value.microsecond == 0:
            return value.strftime("%Y-%m-%d %H:%M")
        return value.isoformat(sep=" ")
    return value.isoformat()


def normalize_cell(value: object) -> str:
    """Return the canonical display string for a raw cell value.

    Numbers are truncated to their integer digit string so that identifiers a
    spreadsheet rendered as ``3.0605E+13`` come back as ``30605000000000``.
    Anything that cannot be rendered degrades to an empty string.
    """
    if value is None:
        return ""
    try:
        if isinstance(value, bool):
            text = str(value)
        elif isinstance(value, (int, float, Decimal)):
            return _number_to_text(value)
        elif isinstance(value, (date, time)):
            return _temporal_to_text(value)
        else:
            text = str(value)
    except (TypeError, ValueError, OverflowError, InvalidOperation):
        return ""

    stripped = text.strip()
    if _EXPONENT_RE.search(stripped):
        try:
            number = Decimal(stripped)
        except InvalidOperation:
            number = None
        if number is not None and number.is_finite():
            return str(int(number))

    if "<" in text and ">" in text:
        text = strip_html(text)
    return _collapse(text)


def normalize_for_match(value: object) -> str:
    """Comparison key: folds diacritics, letter forms, digits and case."""
    text = normalize_cell(value)
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    text = unicodedata.normalize("NFC", text)
    text = _ARABIC_MARKS_RE.sub("", text).replace(_TATWEEL, "")
    text = text.translate(_LETTER_FORMS).translate(_DIGITS)
    return _collapse(text).casefold()


def digits_only(value: object) -> str:
    text = normalize_cell(value).translate(_DIGITS)
    text = _WHOLE_DECIMAL_RE.sub(r"\1", text)
    return _NON_DIGIT_RE.sub("", text)


def parse_int(value: object) -> int | None:
    text = normalize_cell(value).translate(_DIGITS)
    if not text:
        return None
    try:
        return int(Decimal(text))
    except (InvalidOperation, ValueError, OverflowError):
        return None


def parse_digits(value: object) -> int | None:
    """Integer from the digits of a cell, ignoring any other characters."""
    digits = digits_only(value)
    return int(digits) if digits else None


def _from_excel_serial(serial: float) -> datetime | None:
    if not _EXCEL_SERIAL_MIN <= serial <= _EXCEL_SERIAL_MAX:
        return None
    return _EXCEL_EPOCH + timedelta(seconds=round(serial * 86400))


def parse_timestamp(value: object) -> datetime | None:
    """Parse a timestamp cell into a naive ``datetime``.

    Accepts native date/datetime cells, ISO-8601 strings, day-first
    ``dd/mm/yyyy`` strings and Excel serial day numbers.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        try:
            return _from_excel_serial(float(value))
        except (OverflowError, ValueError):
            return None

    text = normalize_cell(value).translate(_DIGITS)
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace(" ", "T", 1))
    except ValueError:
        parsed = None
    if parsed is not None:
        return parsed.replace(tzinfo=None)
    for fmt in _DAY_FIRST_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return _from_excel_serial(float(text))
    except ValueError:
        return None


def combine_date_time(day: object, clock: object) -> datetime | None:
    day_text = normalize_cell(day)
    if not day_text:
        return None
    fraction = _day_fraction(clock)
    if fraction is not None:
        base = parse_timestamp(day)
        if base is None:
            return None
        midnight = datetime.combine(base.date(), time.min)
        return midnight + timedelta(seconds=round(fraction * 86400))
    clock_text = normalize_cell(clock)
    if not isinstance(day, str) and clock_text:
        base = parse_timestamp(day)
        parsed_clock = _parse_clock(clock_text)
        if base is None or parsed_clock is None:
            return None
        return datetime.combine(base.date(), parsed_clock)
    if not clock_text:
        return parse_timestamp(day)
    return parse_timestamp(f"{day_text} {clock_text}")


def _day_fraction(value: object) -> float | None:
    """Excel stores a bare time as a fraction of a day."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str) and "." in value:
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or not 0 <= number < 1:
        return None
    return number


def _parse_clock(value: str) -> time | None:
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    return None
