from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from clinic_records.services.sheet_import.errors import (
    GENERIC_INSERT_REASON,
    FailureCode,
    StoreError,
    describe_store_error,
)
from clinic_records.services.sheet_import.store import RecordStore
from clinic_records.services.sheet_import.types import EntityKind, RowFailure

logger = logging.getLogger(__name__)


@dataclass
class PendingWrite:
    row_index: int
    payload: dict[str, Any]
    # Runs once the payload is stored, e.g. to mark the parent episode.
    after: Callable[[], None] | None = None


@dataclass
class BatchOutcome:
    written: list[int] = field(default_factory=list)
    failed: list[RowFailure] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.written)


class BatchExecutor:
    """Bulk insert with row-isolated fallback.

    One ``insert_many`` is attempted per entity kind. If it fails for any
    reason the attempt is discarded and every payload is retried on its own,
    so a single bad row cannot sink its siblings.
    """

    def __init__(self, store: RecordStore, bulk: bool = True) -> None:
        self.store = store
        self.bulk = bulk

    def execute(self, kind: EntityKind, table: str, writes: Sequence[PendingWrite]) -> BatchOutcome:
        outcome = BatchOutcome()
        if not writes:
            return outcome

        if self.bulk and len(writes) > 1:
            try:
                self.store.insert_many(table, [write.payload for write in writes])
            except Exception as exc:
                logger.warning(
                    "Bulk insert failed, retrying rows individually",
                    extra={"entity_kind": kind.value, "table": table, "rows": len(writes), "error": str(exc)},
                )
            else:
                for write in writes:
                    self._finish(write, outcome)
                return outcome

        for write in writes:
            try:
                self.store.insert_one(table, write.payload)
            except StoreError as exc:
                outcome.failed.append(
                    RowFailure(write.row_index, describe_store_error(exc), FailureCode.store.value)
                )
                continue
            except Exception as exc:
                logger.exception(
                    "Unexpected error inserting row",
                    extra={"entity_kind": kind.value, "table": table, "row_index": write.row_index},
                )
                outcome.failed.append(
                    RowFailure(write.row_index, str(exc) or GENERIC_INSERT_REASON, FailureCode.unexpected.value)
                )
                continue
            self._finish(write, outcome)
        return outcome

    def _finish(self, write: PendingWrite, outcome: BatchOutcome) -> None:
        if write.after is None:
            outcome.written.append(write.row_index)
            return
        try:
            write.after()
        except StoreError as exc:
            outcome.failed.append(
                RowFailure(write.row_index, describe_store_error(exc), FailureCode.store.value)
            )
            return
        except Exception as exc:
            logger.exception("Unexpected error after insert", extra={"row_index": write.row_index})
            outcome.failed.append(
                RowFailure(write.row_index, str(exc) or GENERIC_INSERT_REASON, FailureCode.unexpected.value)
            )
            return
        outcome.written.append(write.row_index)
