from __future__ import annotations

import enum

__all__ = [
    "DuplicateInFileError",
    "FailureCode",
    "GENERIC_INSERT_REASON",
    "ImportSetupError",
    "InvariantViolation",
    "ReferenceMissError",
    "RowError",
    "RowValidationError",
    "SheetImportError",
    "StoreError",
    "StoreErrorCategory",
    "describe_store_error",
]


class FailureCode(str, enum.Enum):
    validation = "validation"
    invariant = "invariant"
    reference = "reference"
    duplicate = "duplicate"
    store = "store"
    unexpected = "unexpected"


class StoreErrorCategory(str, enum.Enum):
    not_null = "not_null"
    foreign_key = "foreign_key"
    unique = "unique"
    check = "check"
    transport = "transport"
    unknown = "unknown"


class SheetImportError(Exception):
    """Base class for reconciliation engine errors."""


class ImportSetupError(SheetImportError):
    """The run cannot start: store unreachable or a required default missing."""


class RowError(SheetImportError):
    code = FailureCode.unexpected

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class RowValidationError(RowError):
    code = FailureCode.validation


class InvariantViolation(RowError):
    code = FailureCode.invariant


class ReferenceMissError(RowError):
    code = FailureCode.reference


class DuplicateInFileError(RowError):
    code = FailureCode.duplicate


class StoreError(SheetImportError):
    def __init__(
        self,
        message: str,
        category: StoreErrorCategory = StoreErrorCategory.unknown,
        *,
        table: str | None = None,
        column: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.table = table
        self.column = column


_CATEGORY_REASONS = {
    StoreErrorCategory.not_null: "Missing required field",
    StoreErrorCategory.foreign_key: "Reference to an unknown record",
    StoreErrorCategory.unique: "Record already exists",
    StoreErrorCategory.check: "Value rejected by a data constraint",
}

GENERIC_INSERT_REASON = "Could not insert row"


def describe_store_error(exc: StoreError) -> str:
    """Human-usable reason for a store failure surfaced on a single row."""
    if exc.category is StoreErrorCategory.transport:
        return exc.message or GENERIC_INSERT_REASON
    base = _CATEGORY_REASONS.get(exc.category)
    if base is None:
        return GENERIC_INSERT_REASON
    if exc.column:
        return f"{base} ({exc.column})"
    return base
