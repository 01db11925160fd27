"""
Typed access layer over a storage engine.

`ContactDao` is the only code that touches the contacts table. Blocking
operations refuse to run on the process main thread unless the database was
built with `allow_main_thread_queries`; `get_all` returns a live view that
re-runs its query whenever the table changes while someone is watching.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor
from typing import Callable, List, Optional, TypeVar

from livestore.domain.models import Contact
from livestore.domain.schema import CONTACT_SCHEMA, RecordMapper
from livestore.infrastructure.engine import ConflictPolicy, StorageEngine
from livestore.observable.dispatcher import Dispatcher
from livestore.observable.live_data import LiveData
from livestore.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class MainThreadAccessError(RuntimeError):
    """Raised when a blocking storage call is made on the main thread."""


class QueryLiveData(LiveData[T]):
    """
    `LiveData` whose value is the result of a query.

    The query runs on `executor` when the cell gains its first active
    subscriber and again after every invalidation of `table` while it has
    active subscribers. The cell listens to the engine only while active.
    Results are posted, so delivery happens on the dispatcher thread; a
    result equal to the held value is not re-delivered. Queries for one cell
    never overlap, so posted results follow commit order; while a change is
    pending or being re-queried the held value counts as stale and is not
    delivered.
    """

    def __init__(
        self,
        engine: StorageEngine,
        table: str,
        compute: Callable[[], T],
        executor: Executor,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        super().__init__(dispatcher=dispatcher)
        self._engine = engine
        self._table = table
        self._compute = compute
        self._executor = executor
        self._flag_lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._invalid = True
        self._refreshing = False
        self._active = False
        self._listener_handle: Optional[int] = None

    def on_active(self) -> None:
        with self._flag_lock:
            self._active = True
            if self._listener_handle is None:
                self._listener_handle = self._engine.add_invalidation_listener(
                    self._table, self._on_invalidated
                )
        self._executor.submit(self._refresh)

    def on_inactive(self) -> None:
        with self._flag_lock:
            self._active = False
            if self._listener_handle is not None:
                self._engine.remove_invalidation_listener(self._listener_handle)
                self._listener_handle = None
            # Changes are not tracked while inactive; re-query on the next activation.
            self._invalid = True

    def _on_invalidated(self, table: str) -> None:
        # Runs on the writing thread; must not wait for the cell lock.
        with self._flag_lock:
            self._invalid = True
            active = self._active
        if active:
            self._executor.submit(self._refresh)

    def _is_stale(self) -> bool:
        with self._flag_lock:
            return self._invalid or self._refreshing

    def _refresh(self) -> None:
        with self._refresh_lock:
            while True:
                with self._flag_lock:
                    if not self._invalid or not self._active:
                        return
                    self._invalid = False
                    self._refreshing = True
                try:
                    result = self._compute()
                except Exception:
                    # Stays invalid; the next activation or table change retries.
                    with self._flag_lock:
                        self._invalid = True
                        self._refreshing = False
                    log.exception("Live query failed", extra={"table": self._table})
                    return
                with self._flag_lock:
                    self._refreshing = False
                    if self._invalid:
                        # Changed while querying; the result is already outdated.
                        continue
                self._post_value_if_changed(result)


class ContactDao:
    """Operations on the `contacts` table."""

    def __init__(
        self,
        engine: StorageEngine,
        query_executor: Executor,
        allow_main_thread_queries: bool = False,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self._engine = engine
        self._query_executor = query_executor
        self._allow_main_thread_queries = allow_main_thread_queries
        self._dispatcher = dispatcher
        self._mapper = RecordMapper(CONTACT_SCHEMA, Contact)

    def _assert_not_main_thread(self) -> None:
        if self._allow_main_thread_queries:
            return
        if threading.current_thread() is threading.main_thread():
            raise MainThreadAccessError(
                "Cannot access the database on the main thread; "
                "submit the call to a worker or enable allow_main_thread_queries"
            )

    def insert(self, contact: Contact) -> Optional[int]:
        """
        Insert a contact, ignoring it if an equal one already exists.

        Returns the generated id, or None when the insert was ignored.
        """
        self._assert_not_main_thread()
        new_id = self._engine.insert(
            CONTACT_SCHEMA, self._mapper.to_row(contact), ConflictPolicy.IGNORE
        )
        if new_id is None:
            log.info(
                "Contact already stored; insert ignored",
                extra={"contact_name": contact.name, "occupation": contact.occupation},
            )
        else:
            log.debug("Contact inserted", extra={"id": new_id})
        return new_id

    def delete_all(self) -> int:
        self._assert_not_main_thread()
        removed = self._engine.delete_all(CONTACT_SCHEMA)
        log.debug("Contacts deleted", extra={"rows": removed})
        return removed

    def _query_sorted(self) -> List[Contact]:
        rows = self._engine.query_all(CONTACT_SCHEMA, order_by=CONTACT_SCHEMA.order_by)
        return [self._mapper.from_row(row) for row in rows]

    def get_all(self) -> LiveData[List[Contact]]:
        """Live list of all contacts ordered by name ascending."""
        return QueryLiveData(
            self._engine,
            CONTACT_SCHEMA.name,
            self._query_sorted,
            self._query_executor,
            dispatcher=self._dispatcher,
        )

    def get_all_snapshot(self) -> List[Contact]:
        """One-shot blocking read of all contacts ordered by name."""
        self._assert_not_main_thread()
        return self._query_sorted()

    def count(self) -> int:
        self._assert_not_main_thread()
        return self._engine.count(CONTACT_SCHEMA)


__all__ = ["ContactDao", "MainThreadAccessError", "QueryLiveData"]
