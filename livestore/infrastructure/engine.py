"""
Storage engine contract for livestore.

Engines persist rows under a named table described by a `TableSchema` and
notify invalidation listeners after every committed change. Conflicts on the
uniqueness key are resolved by the `ConflictPolicy` passed to `insert`.
"""

from __future__ import annotations

import abc
import enum
import itertools
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from livestore.domain.schema import TableSchema
from livestore.utils.logging import get_logger

log = get_logger(__name__)

InvalidationCallback = Callable[[str], None]


class ConflictPolicy(str, enum.Enum):
    """What to do when an insert would violate a uniqueness constraint."""

    IGNORE = "ignore"
    REPLACE = "replace"
    ABORT = "abort"


class StorageError(Exception):
    """Base class for storage engine failures."""


class ConstraintViolation(StorageError):
    """Raised when an insert conflicts under `ConflictPolicy.ABORT`."""

    def __init__(self, table: str, key: Tuple[Any, ...]) -> None:
        super().__init__(f"Uniqueness conflict in '{table}' on {key!r}")
        self.table = table
        self.key = key


class InvalidationTracker:
    """
    Registry of per-table change listeners.

    Listeners are invoked on the thread that committed the change, after the
    engine released its write lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._listeners: Dict[int, Tuple[str, InvalidationCallback]] = {}

    def add(self, table: str, callback: InvalidationCallback) -> int:
        with self._lock:
            handle = next(self._ids)
            self._listeners[handle] = (table, callback)
            return handle

    def remove(self, handle: int) -> None:
        with self._lock:
            self._listeners.pop(handle, None)

    def notify(self, table: str) -> None:
        with self._lock:
            callbacks = [cb for name, cb in self._listeners.values() if name == table]
        log.debug("Table invalidated", extra={"table": table, "listeners": len(callbacks)})
        for callback in callbacks:
            callback(table)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


class StorageEngine(abc.ABC):
    """
    Durable key-row store consumed by the access layer.

    Subclasses implement the row operations; invalidation bookkeeping is
    shared through `InvalidationTracker`.
    """

    name: str = "abstract"

    def __init__(self) -> None:
        self._tracker = InvalidationTracker()

    @abc.abstractmethod
    def create_table(self, schema: TableSchema) -> None:
        """Create the table if it does not exist yet."""
        raise NotImplementedError

    @abc.abstractmethod
    def insert(
        self,
        schema: TableSchema,
        row: Dict[str, Any],
        policy: ConflictPolicy = ConflictPolicy.ABORT,
    ) -> Optional[int]:
        """
        Insert one row.

        Returns
        -------
        int | None
            The generated primary key, or None when the row was ignored
            because of a conflict.

        Raises
        ------
        ConstraintViolation
            If the row conflicts and the policy is ABORT.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def delete_all(self, schema: TableSchema) -> int:
        """Remove every row of the table and return how many were removed."""
        raise NotImplementedError

    @abc.abstractmethod
    def query_all(
        self,
        schema: TableSchema,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Return all rows, optionally ordered by one column."""
        raise NotImplementedError

    @abc.abstractmethod
    def count(self, schema: TableSchema) -> int:
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - engines without resources
        """Release engine resources."""

    def add_invalidation_listener(self, table: str, callback: InvalidationCallback) -> int:
        return self._tracker.add(table, callback)

    def remove_invalidation_listener(self, handle: int) -> None:
        self._tracker.remove(handle)

    def _notify_invalidated(self, table: str) -> None:
        self._tracker.notify(table)


__all__ = [
    "ConflictPolicy",
    "ConstraintViolation",
    "InvalidationCallback",
    "InvalidationTracker",
    "StorageEngine",
    "StorageError",
]
