"""Per-run reconciliation context.

The context is built once before a run from the current store snapshot and
passed explicitly to every pipeline. Lookup maps are never refreshed during
the run, so a reference row created mid-run is not visible to later rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from clinic_records.core.settings import Settings
from clinic_records.models import LOOKUP_MODELS
from clinic_records.services.sheet_import.errors import ImportSetupError, ReferenceMissError, StoreError
from clinic_records.services.sheet_import.normalize import normalize_cell, normalize_for_match
from clinic_records.services.sheet_import.store import RecordStore

logger = logging.getLogger(__name__)

LOOKUP_TABLES = tuple(model.__tablename__ for model in LOOKUP_MODELS)

# Legacy ward spellings mapped to the names kept in the departments table.
DEPARTMENT_ALIASES = {
    normalize_for_match(alias): name
    for alias, name in (
        ("العنايه المتوسطه", "العناية المتوسطة"),
        ("عناية عامة", "العناية العامة"),
        ("عناية عامه", "العناية العامة"),
    )
}


def canonical_department_name(raw: object) -> str:
    text = normalize_cell(raw)
    if not text:
        return ""
    return DEPARTMENT_ALIASES.get(normalize_for_match(text), text)


@dataclass(frozen=True)
class LookupMap:
    table: str
    ids: Mapping[str, int]

    @classmethod
    def from_rows(cls, table: str, rows: list[dict[str, Any]]) -> "LookupMap":
        ids: dict[str, int] = {}
        for row in rows:
            key = normalize_for_match(row.get("name"))
            if key:
                # Names are unique in storage; two names may still fold to one key.
                ids.setdefault(key, row["id"])
        return cls(table=table, ids=ids)

    def get(self, name: object) -> int | None:
        key = normalize_for_match(name)
        if not key:
            return None
        return self.ids.get(key)

    def __len__(self) -> int:
        return len(self.ids)


@dataclass
class ReconciliationContext:
    settings: Settings
    lookups: dict[str, LookupMap] = field(default_factory=dict)
    default_department_id: int | None = None

    @classmethod
    def load(cls, store: RecordStore, settings: Settings) -> "ReconciliationContext":
        lookups: dict[str, LookupMap] = {}
        try:
            for table in LOOKUP_TABLES:
                lookups[table] = LookupMap.from_rows(table, store.select_all(table, ("id", "name")))
            departments = store.select_all("departments", ("id", "name"))
        except StoreError as exc:
            raise ImportSetupError(f"Could not load reference tables: {exc.message}") from exc

        context = cls(settings=settings, lookups=lookups)
        context.default_department_id = context._pick_default_department(departments)
        logger.info(
            "Reconciliation context loaded",
            extra={
                "lookup_sizes": {table: len(lookup) for table, lookup in lookups.items()},
                "default_department_id": context.default_department_id,
            },
        )
        return context

    def _pick_default_department(self, departments: list[dict[str, Any]]) -> int:
        if not departments:
            raise ImportSetupError("No departments exist; a default department is required")
        configured = self.settings.import_default_department
        if configured:
            department_id = self.lookups["departments"].get(configured)
            if department_id is None:
                raise ImportSetupError(f"Configured default department not found: {configured}")
            return department_id
        return min(row["id"] for row in departments)

    def resolve_id(self, table: str, name: object) -> int | None:
        lookup = self.lookups.get(table)
        if lookup is None:
            return None
        if table == "departments":
            name = canonical_department_name(name)
        return lookup.get(name)

    def resolve_reference(self, table: str, name: object, *, critical: bool = False) -> int | None:
        """Resolve a free-text reference under the critical/optional policy.

        Optional references resolve to ``None`` on a miss. Critical references
        fall back to the table default (only departments carry one) and fail
        the row when there is none.
        """
        resolved = self.resolve_id(table, name)
        if resolved is not None:
            return resolved
        if not critical:
            return None
        default = self.default_for(table)
        if default is not None:
            return default
        text = normalize_cell(name)
        if text:
            raise ReferenceMissError(f"Unknown {table} reference: {text}")
        raise ReferenceMissError(f"Missing {table} reference")

    def default_for(self, table: str) -> int | None:
        if table == "departments":
            return self.default_department_id
        return None
