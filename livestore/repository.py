"""
Repository layer: the single entry point consumers use for contacts.

Reads pass straight through to the DAO's live view. Writes are submitted to a
bounded worker pool so they never block the caller; the returned future
completes once the write has been committed (or ignored on conflict).

Ordering
--------
The pool dequeues submissions in FIFO order, but with more than one worker
two writes may still commit out of order. A caller that needs "delete, then
insert" semantics waits on the first future before submitting the second.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

from livestore.dao import ContactDao
from livestore.domain.models import Contact
from livestore.observable.live_data import LiveData
from livestore.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_WRITE_WORKERS = 4


class WriteExecutor:
    """Fixed-size pool running all mutating storage calls."""

    def __init__(self, max_workers: int = DEFAULT_WRITE_WORKERS, name: str = "livestore-writer"):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        return self._pool.submit(fn, *args)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


def _log_failure(operation: str) -> Callable[[Future], None]:
    def callback(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            log.error(
                f"[WRITE FAILED] {operation}",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"operation": operation, "error_type": type(exc).__name__},
            )

    return callback


class ContactRepository:
    """
    Mediates between consumers and the contact DAO.

    Conflicting inserts are dropped silently by the DAO's ignore policy; the
    returned future still resolves to None.
    """

    def __init__(self, dao: ContactDao, write_executor: WriteExecutor) -> None:
        self._dao = dao
        self._writes = write_executor
        self._all_contacts = dao.get_all()

    @property
    def all_contacts(self) -> LiveData[List[Contact]]:
        return self._all_contacts

    def _submit(self, operation: str, fn: Callable[[], Any]) -> "Future[None]":
        def run() -> None:
            fn()

        future = self._writes.submit(run)
        future.add_done_callback(_log_failure(operation))
        return future

    def insert(self, contact: Contact) -> "Future[None]":
        return self._submit("insert", lambda: self._dao.insert(contact))

    def delete_all(self) -> "Future[None]":
        return self._submit("delete_all", self._dao.delete_all)


def wait_all(futures: List[Future], timeout: Optional[float] = None) -> None:
    """Block until every future has completed, re-raising the first failure."""
    for future in futures:
        future.result(timeout=timeout)


__all__ = ["ContactRepository", "DEFAULT_WRITE_WORKERS", "WriteExecutor", "wait_all"]
