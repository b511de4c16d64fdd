from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy import Table, insert, select, update
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_records.models import (
    Admission,
    Department,
    Diagnosis,
    Discharge,
    District,
    Doctor,
    EmergencyVisit,
    Endoscopy,
    Governorate,
    Hospital,
    Occupation,
    Procedure,
    Station,
)
from clinic_records.services.sheet_import.errors import StoreError, StoreErrorCategory

logger = logging.getLogger(__name__)

Row = dict[str, Any]

TABLES: dict[str, Table] = {
    model.__tablename__: model.__table__
    for model in (
        Department,
        Diagnosis,
        Doctor,
        Governorate,
        District,
        Station,
        Occupation,
        Hospital,
        Admission,
        Discharge,
        EmergencyVisit,
        Procedure,
        Endoscopy,
    )
}


class RecordStore(Protocol):
    """Generic per-table query/insert/update contract used by the pipelines."""

    def select_all(self, table: str, columns: Sequence[str] | None = None) -> list[Row]:
        ...

    def select_where(
        self,
        table: str,
        filters: Mapping[str, Any],
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]:
        ...

    def insert_one(self, table: str, payload: Mapping[str, Any]) -> Row:
        ...

    def insert_many(self, table: str, payloads: Sequence[Mapping[str, Any]]) -> int:
        ...

    def update_by_id(self, table: str, row_id: int, patch: Mapping[str, Any]) -> None:
        ...


_PG_CATEGORIES = {
    "23502": StoreErrorCategory.not_null,
    "23503": StoreErrorCategory.foreign_key,
    "23505": StoreErrorCategory.unique,
    "23514": StoreErrorCategory.check,
}

_SQLITE_CATEGORIES = (
    ("NOT NULL constraint failed", StoreErrorCategory.not_null),
    ("FOREIGN KEY constraint failed", StoreErrorCategory.foreign_key),
    ("UNIQUE constraint failed", StoreErrorCategory.unique),
    ("CHECK constraint failed", StoreErrorCategory.check),
)

_SQLITE_COLUMN_RE = re.compile(r"constraint failed: (?:\w+\.)?(\w+)")


def classify_db_error(exc: SQLAlchemyError) -> tuple[StoreErrorCategory, str | None]:
    """Map a driver error to a category and, when known, the offending column."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return StoreErrorCategory.transport, None
    if not isinstance(exc, DBAPIError):
        return StoreErrorCategory.unknown, None
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _PG_CATEGORIES:
        diag = getattr(orig, "diag", None)
        return _PG_CATEGORIES[code], getattr(diag, "column_name", None)
    message = str(orig)
    for marker, category in _SQLITE_CATEGORIES:
        if marker in message:
            match = _SQLITE_COLUMN_RE.search(message)
            column = match.group(1) if match and category is not StoreErrorCategory.foreign_key else None
            return category, column
    return StoreErrorCategory.unknown, None


class SqlAlchemyStore:
    """``RecordStore`` over a SQLAlchemy session.

    Every write commits, so rows written before a failure stay durable. A
    failed statement rolls the session back and surfaces as ``StoreError``.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _table(self, name: str) -> Table:
        try:
            return TABLES[name]
        except KeyError:
            raise StoreError(f"Unknown table: {name}") from None

    def select_all(self, table: str, columns: Sequence[str] | None = None) -> list[Row]:
        target = self._table(table)
        selected = [target.c[name] for name in columns] if columns else [target]
        stmt = select(*selected)
        if "id" in target.c:
            stmt = stmt.order_by(target.c.id)
        return self._fetch(table, stmt)

    def select_where(
        self,
        table: str,
        filters: Mapping[str, Any],
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]:
        target = self._table(table)
        stmt = select(target)
        for column, value in filters.items():
            if value is None:
                stmt = stmt.where(target.c[column].is_(None))
            else:
                stmt = stmt.where(target.c[column] == value)
        for spec in order_by:
            descending = spec.startswith("-")
            col = target.c[spec.lstrip("-")]
            stmt = stmt.order_by((col.desc() if descending else col.asc()).nulls_last())
        if "id" in target.c:
            stmt = stmt.order_by(target.c.id.desc() if order_by and order_by[-1].startswith("-") else target.c.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(table, stmt)

    def insert_one(self, table: str, payload: Mapping[str, Any]) -> Row:
        target = self._table(table)
        try:
            result = self.session.execute(insert(target).values(**dict(payload)))
            row_id = result.inserted_primary_key[0]
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc
        rows = self.select_where(table, {"id": row_id}, limit=1)
        return rows[0]

    def insert_many(self, table: str, payloads: Sequence[Mapping[str, Any]]) -> int:
        if not payloads:
            return 0
        target = self._table(table)
        key_sets = {frozenset(payload) for payload in payloads}
        try:
            if len(key_sets) == 1:
                self.session.execute(insert(target), [dict(payload) for payload in payloads])
            else:
                for payload in payloads:
                    self.session.execute(insert(target).values(**dict(payload)))
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc
        return len(payloads)

    def update_by_id(self, table: str, row_id: int, patch: Mapping[str, Any]) -> None:
        if not patch:
            return
        target = self._table(table)
        try:
            self.session.execute(update(target).where(target.c.id == row_id).values(**dict(patch)))
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc

    def _fetch(self, table: str, stmt) -> list[Row]:
        try:
            return [dict(row._mapping) for row in self.session.execute(stmt)]
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc

    def _fail(self, table: str, exc: SQLAlchemyError) -> StoreError:
        self.session.rollback()
        category, column = classify_db_error(exc)
        message = str(getattr(exc, "orig", None) or exc).strip()
        logger.debug(
            "Store statement failed",
            extra={"table": table, "category": category.value, "column": column},
        )
        return StoreError(message, category, table=table, column=column)

