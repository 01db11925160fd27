"""
In-memory storage engine.

Keeps rows in per-table dictionaries guarded by a single re-entrant lock, so
all mutations are executed by one writer at a time. Uniqueness is enforced on
the schema's conflict key and on the primary key. Nothing survives the
process; this is the default backend and the one used by unit tests.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Tuple

from livestore.domain.schema import TableSchema
from livestore.infrastructure.engine import ConflictPolicy, ConstraintViolation, StorageEngine
from livestore.utils.logging import get_logger

log = get_logger(__name__)


class _Table:
    def __init__(self, schema: TableSchema) -> None:
        self.schema = schema
        self.rows: Dict[int, Dict[str, Any]] = {}
        self.next_id = 1

    def find_conflict(self, row: Dict[str, Any]) -> Optional[int]:
        key_cols = self.schema.conflict_columns
        key = tuple(row.get(c) for c in key_cols)
        pk = self.schema.primary_key.name
        for row_id, existing in self.rows.items():
            if tuple(existing.get(c) for c in key_cols) == key:
                return row_id
            if row.get(pk) is not None and existing[pk] == row[pk]:
                return row_id
        return None

    def store(self, row: Dict[str, Any], pk: str) -> Any:
        if row.get(pk) is None:
            row[pk] = self.next_id
        if isinstance(row[pk], int):
            # Generated ids never reuse a key, including caller-supplied ones.
            self.next_id = max(self.next_id, row[pk] + 1)
        self.rows[row[pk]] = row
        return row[pk]


class InMemoryEngine(StorageEngine):
    """Thread-safe, process-local engine."""

    name = "memory"

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.RLock()
        self._tables: Dict[str, _Table] = {}

    def _table(self, schema: TableSchema) -> _Table:
        try:
            return self._tables[schema.name]
        except KeyError:
            raise KeyError(f"Table '{schema.name}' does not exist") from None

    def create_table(self, schema: TableSchema) -> None:
        with self._lock:
            if schema.name not in self._tables:
                self._tables[schema.name] = _Table(schema)
                log.debug("Table created", extra={"table": schema.name, "engine": self.name})

    def insert(
        self,
        schema: TableSchema,
        row: Dict[str, Any],
        policy: ConflictPolicy = ConflictPolicy.ABORT,
    ) -> Optional[int]:
        pk = schema.primary_key.name
        with self._lock:
            table = self._table(schema)
            conflict = table.find_conflict(row)
            if conflict is not None:
                if policy is ConflictPolicy.IGNORE:
                    log.debug(
                        "Insert ignored on conflict",
                        extra={"table": schema.name, "conflicting_id": conflict},
                    )
                    return None
                if policy is ConflictPolicy.ABORT:
                    raise ConstraintViolation(
                        schema.name, tuple(row.get(c) for c in schema.conflict_columns)
                    )
                del table.rows[conflict]
            new_id = table.store(dict(row), pk)
        self._notify_invalidated(schema.name)
        return new_id

    def delete_all(self, schema: TableSchema) -> int:
        with self._lock:
            table = self._table(schema)
            removed = len(table.rows)
            table.rows.clear()
        if removed:
            self._notify_invalidated(schema.name)
        return removed

    def query_all(
        self,
        schema: TableSchema,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(r) for r in self._table(schema).rows.values()]
        if order_by is not None:
            schema.column(order_by)
            pk = schema.primary_key.name

            def sort_key(r: Dict[str, Any]) -> Tuple[Any, Any]:
                return (r[order_by], r[pk])

            rows.sort(key=sort_key, reverse=descending)
        return rows

    def count(self, schema: TableSchema) -> int:
        with self._lock:
            return len(self._table(schema).rows)


__all__ = ["InMemoryEngine"]
