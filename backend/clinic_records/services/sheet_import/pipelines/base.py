"""Row reconciliation framework shared by the import pipelines.

Every row walks the same states::

    pending -> validated -> resolved -> matched | unmatched -> written | failed

``process`` drives the transitions and subclasses fill in the steps.
Cross-field invariants are checked once references are resolved, before any
write. Matched rows are patched right away; unmatched rows are queued and
written in bulk by the ``BatchExecutor`` when the queue fills up or the run
finishes. A row is counted exactly once, as written or failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Iterable, Mapping

from clinic_records.services.sheet_import.batch import BatchExecutor, PendingWrite
from clinic_records.services.sheet_import.context import ReconciliationContext
from clinic_records.services.sheet_import.errors import (
    DuplicateInFileError,
    FailureCode,
    InvariantViolation,
    RowError,
    RowValidationError,
    StoreError,
    describe_store_error,
)
from clinic_records.services.sheet_import.normalize import digits_only, normalize_for_match
from clinic_records.services.sheet_import.store import RecordStore, Row
from clinic_records.services.sheet_import.types import (
    TERMINAL_STATES,
    EntityKind,
    ImportKind,
    ImportResult,
    RowFailure,
    RowRecord,
    RowState,
    SheetRow,
)

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[RowState, frozenset[RowState]] = {
    RowState.pending: frozenset({RowState.validated}),
    RowState.validated: frozenset({RowState.resolved}),
    RowState.resolved: frozenset({RowState.matched, RowState.unmatched}),
    RowState.matched: frozenset({RowState.written}),
    RowState.unmatched: frozenset({RowState.written}),
}

UNEXPECTED_REASON = "Unexpected error while importing row"


@dataclass
class RowWork:
    """Mutable per-row state carried between pipeline steps."""

    row_index: int
    row: Any = None
    state: RowState = RowState.pending
    values: dict[str, Any] = field(default_factory=dict)
    existing: Row | None = None
    parent: Row | None = None
    variant: Any = None
    failure: RowFailure | None = None

    def advance(self, state: RowState) -> None:
        if state is RowState.failed:
            if self.state in TERMINAL_STATES:
                raise ValueError(f"Row {self.row_index} already finished as {self.state.value}")
        elif state not in _TRANSITIONS.get(self.state, frozenset()):
            raise ValueError(f"Row {self.row_index} cannot move from {self.state.value} to {state.value}")
        self.state = state


def diff_patch(existing: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Non-destructive patch: blank incoming values never overwrite."""
    patch: dict[str, Any] = {}
    for column, value in updates.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if existing.get(column) != value:
            patch[column] = value
    return patch


def business_key(row: SheetRow) -> str:
    key = digits_only(getattr(row, "unified_number", ""))
    if not key:
        raise RowValidationError("Missing unified number")
    return key


def exact_digits(value: object, length: int) -> str | None:
    digits = digits_only(value)
    return digits if len(digits) == length else None


def check_secondary_diagnosis(
    primary_text: str,
    secondary_text: str,
    primary_id: int | None = None,
    secondary_id: int | None = None,
) -> None:
    if primary_id is not None and primary_id == secondary_id:
        raise InvariantViolation("Secondary diagnosis cannot equal the primary diagnosis")
    primary_key = normalize_for_match(primary_text)
    if primary_key and primary_key == normalize_for_match(secondary_text):
        raise InvariantViolation("Secondary diagnosis cannot equal the primary diagnosis")


class ReconciliationPipeline:
    kind: ClassVar[ImportKind]
    row_model: ClassVar[type[SheetRow]]
    batch_size: ClassVar[int] = 500

    def __init__(
        self,
        store: RecordStore,
        context: ReconciliationContext,
        executor: BatchExecutor | None = None,
    ) -> None:
        self.store = store
        self.context = context
        self.settings = context.settings
        self.executor = executor or BatchExecutor(store, bulk=context.settings.import_bulk_writes)
        self.result = ImportResult(kind=self.kind.value)
        self.works: dict[int, RowWork] = {}
        self._queues: dict[tuple[EntityKind, str], list[tuple[RowWork, PendingWrite]]] = {}
        self._queued = 0
        self._claimed: dict[tuple[Any, ...], RowWork] = {}

    # Steps implemented by each pipeline.

    def validate(self, work: RowWork) -> None:
        raise NotImplementedError

    def resolve(self, work: RowWork) -> None:
        raise NotImplementedError

    def locate(self, work: RowWork) -> Row | None:
        raise NotImplementedError

    def check_invariants(self, work: RowWork) -> None:
        return None

    def apply_match(self, work: RowWork) -> None:
        raise NotImplementedError

    def apply_insert(self, work: RowWork) -> None:
        raise NotImplementedError

    # Driver.

    def run(
        self,
        rows: Iterable[tuple[int, RowRecord]],
        on_row: Callable[[int], None] | None = None,
    ) -> ImportResult:
        for row_index, record in rows:
            self.process(row_index, record)
            if on_row is not None:
                on_row(row_index)
        return self.finish()

    def process(self, row_index: int, record: RowRecord) -> RowWork:
        work = RowWork(row_index=row_index)
        self.works[row_index] = work
        try:
            work.row = self.row_model.from_record(row_index, record)
            self.validate(work)
            work.advance(RowState.validated)
            self.resolve(work)
            self.check_invariants(work)
            work.advance(RowState.resolved)
            work.existing = self.locate(work)
            work.advance(RowState.matched if work.existing is not None else RowState.unmatched)
            if work.existing is not None:
                self.apply_match(work)
            else:
                self.apply_insert(work)
        except RowError as exc:
            self.fail(work, exc.reason, exc.code)
        except StoreError as exc:
            self.fail(work, describe_store_error(exc), FailureCode.store)
        except Exception as exc:
            logger.exception(
                "Unexpected error importing row",
                extra={"import_kind": self.kind.value, "row_index": row_index},
            )
            self.fail(work, str(exc) or UNEXPECTED_REASON, FailureCode.unexpected)
        if self._queued >= self.batch_size:
            self.flush()
        return work

    def preview(self, row_index: int, record: RowRecord) -> RowFailure | None:
        """Run only the store-independent checks for one row."""
        work = RowWork(row_index=row_index)
        try:
            work.row = self.row_model.from_record(row_index, record)
            self.validate(work)
            self.check_invariants(work)
        except RowError as exc:
            return RowFailure(row_index, exc.reason, exc.code.value)
        return None

    def finish(self) -> ImportResult:
        self.flush()
        result = self.result
        result.failed = sorted(
            (work.failure for work in self.works.values() if work.failure is not None),
            key=lambda failure: failure.row_index,
        )
        return result

    # Helpers for subclasses.

    def fail(self, work: RowWork, reason: str, code: FailureCode) -> None:
        work.advance(RowState.failed)
        work.failure = RowFailure(work.row_index, reason, code.value)

    def claim(self, work: RowWork, *key: Any) -> None:
        """Reserve a natural key for an insert made by this run.

        A key held by a row still waiting in the queue is settled by flushing
        first; only a claimant that was actually written makes this row a
        duplicate. A claimant that failed gives the key up.
        """
        claimant = self._claimed.get(key)
        if claimant is not None and claimant.state not in TERMINAL_STATES:
            self.flush()
        if claimant is not None and claimant.state is RowState.written:
            raise DuplicateInFileError("Duplicate of an earlier row in this file")
        self._claimed[key] = work

    def patch_existing(
        self,
        kind: EntityKind,
        table: str,
        existing: Row,
        updates: Mapping[str, Any],
        count_skipped: bool = True,
    ) -> bool:
        patch = diff_patch(existing, updates)
        if not patch:
            if count_skipped:
                self.result.count_skipped(kind)
            return False
        self.store.update_by_id(table, existing["id"], patch)
        self.result.count_updated(kind)
        return True

    def insert_now(self, kind: EntityKind, table: str, payload: Mapping[str, Any]) -> Row:
        row = self.store.insert_one(table, payload)
        self.result.count_inserted(kind)
        return row

    def written(self, work: RowWork) -> None:
        work.advance(RowState.written)

    def enqueue(
        self,
        work: RowWork,
        kind: EntityKind,
        table: str,
        payload: dict[str, Any],
        after: Callable[[], None] | None = None,
    ) -> None:
        pending = PendingWrite(row_index=work.row_index, payload=payload, after=after)
        self._queues.setdefault((kind, table), []).append((work, pending))
        self._queued += 1

    def flush(self) -> None:
        queues, self._queues, self._queued = self._queues, {}, 0
        for (kind, table), entries in queues.items():
            by_index = {pending.row_index: work for work, pending in entries}
            outcome = self.executor.execute(kind, table, [pending for _, pending in entries])
            self.result.count_inserted(kind, outcome.inserted_count)
            for row_index in outcome.written:
                by_index[row_index].advance(RowState.written)
            for failure in outcome.failed:
                work = by_index[failure.row_index]
                work.advance(RowState.failed)
                work.failure = failure
            logger.info(
                "Batch written",
                extra={
                    "import_kind": self.kind.value,
                    "entity_kind": kind.value,
                    "inserted": outcome.inserted_count,
                    "failed": len(outcome.failed),
                },
            )
