"""
Database handle and its process-wide holder.

`ContactDatabase` owns the storage engine, the write and query executors and
the DAOs built on them. `DatabaseHolder` keeps exactly one database per
process: it is built lazily on first access under a double-checked lock, so
concurrent first callers all observe the same instance. The writer pool is
shut down automatically on interpreter exit.
"""

from __future__ import annotations

import atexit
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from livestore.config import Settings, get_settings
from livestore.dao import ContactDao
from livestore.domain.models import Contact
from livestore.domain.schema import CONTACT_SCHEMA
from livestore.infrastructure.engine import StorageEngine
from livestore.infrastructure.memory import InMemoryEngine
from livestore.observable.dispatcher import Dispatcher, get_main_dispatcher
from livestore.repository import ContactRepository, WriteExecutor
from livestore.utils.logging import get_logger

log = get_logger(__name__)

DatabaseCallback = Callable[["ContactDatabase"], None]

SAMPLE_CONTACTS = (
    Contact(name="Ada Lovelace", occupation="Mathematician"),
    Contact(name="Grace Hopper", occupation="Computer Scientist"),
)


class ContactDatabase:
    """
    Storage handle shared by every DAO created from it.

    Parameters
    ----------
    engine : StorageEngine
        Engine holding the rows; the contacts table is created on it.
    write_executor : WriteExecutor
        Pool running all mutating calls made through repositories.
    allow_main_thread_queries : bool
        Let DAOs run blocking calls on the main thread.
    on_create : iterable of callables
        Run once on the write executor after construction, e.g. to seed data.
    """

    def __init__(
        self,
        engine: StorageEngine,
        write_executor: Optional[WriteExecutor] = None,
        allow_main_thread_queries: bool = False,
        dispatcher: Optional[Dispatcher] = None,
        on_create: Iterable[DatabaseCallback] = (),
    ) -> None:
        self.engine = engine
        self.write_executor = write_executor or WriteExecutor()
        self.allow_main_thread_queries = allow_main_thread_queries
        self._dispatcher = dispatcher
        # Single query thread: refreshes run in submission order.
        self._query_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="livestore-query")
        self._dao: Optional[ContactDao] = None
        self._dao_lock = threading.Lock()
        self._closed = False

        engine.create_table(CONTACT_SCHEMA)
        for callback in on_create:
            self.write_executor.submit(callback, self)

    def contact_dao(self) -> ContactDao:
        with self._dao_lock:
            if self._dao is None:
                self._dao = ContactDao(
                    self.engine,
                    self._query_executor,
                    allow_main_thread_queries=self.allow_main_thread_queries,
                    dispatcher=self._dispatcher,
                )
            return self._dao

    def repository(self) -> ContactRepository:
        return ContactRepository(self.contact_dao(), self.write_executor)

    def flush(self, timeout: Optional[float] = 5.0) -> None:
        """
        Wait until live queries triggered so far have been re-run and their
        results delivered.

        Does not wait for queued writes; wait on their futures first.
        """
        self._query_executor.submit(lambda: None).result(timeout=timeout)
        (self._dispatcher or get_main_dispatcher()).flush(timeout)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Finish pending writes and release the engine."""
        if self._closed:
            return
        self._closed = True
        self.write_executor.shutdown(wait=True)
        self._query_executor.shutdown(wait=True)
        self.engine.close()


def prepopulate(database: ContactDatabase) -> None:
    """Replace the table content with the sample contacts."""
    dao = database.contact_dao()
    dao.delete_all()
    for contact in SAMPLE_CONTACTS:
        dao.insert(contact)
    log.info("Database prepopulated", extra={"rows": len(SAMPLE_CONTACTS)})


def build_engine(settings: Settings) -> StorageEngine:
    if settings.backend == "postgres":
        # Imported lazily so the in-memory backend works without a database driver.
        from livestore.infrastructure.postgres import PostgresEngine

        return PostgresEngine()
    return InMemoryEngine()


def build_database(settings: Optional[Settings] = None) -> ContactDatabase:
    """Construct a database from settings."""
    settings = settings or get_settings()
    return ContactDatabase(
        build_engine(settings),
        WriteExecutor(max_workers=settings.write_workers),
        allow_main_thread_queries=settings.allow_main_thread_queries,
        on_create=[prepopulate] if settings.prepopulate else [],
    )


class DatabaseHolder:
    """
    Process-wide owner of the single `ContactDatabase`.

    The instance is created on first `get()` and lives until `reset()` or
    interpreter exit.
    """

    _instance: Optional[ContactDatabase] = None
    _lock = threading.Lock()
    _atexit_registered = False

    @classmethod
    def get(cls, factory: Optional[Callable[[], ContactDatabase]] = None) -> ContactDatabase:
        instance = cls._instance
        if instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = (factory or build_database)()
                    log.info(
                        "Database created",
                        extra={"engine": cls._instance.engine.name},
                    )
                    if not cls._atexit_registered:
                        atexit.register(cls.reset)
                        cls._atexit_registered = True
                instance = cls._instance
        return instance

    @classmethod
    def peek(cls) -> Optional[ContactDatabase]:
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Close and forget the current database, if any."""
        with cls._lock:
            instance, cls._instance = cls._instance, None
        if instance is not None:
            instance.close()


def get_database() -> ContactDatabase:
    return DatabaseHolder.get()


def get_repository() -> ContactRepository:
    """Build a repository over the process-wide database."""
    return get_database().repository()


__all__ = [
    "ContactDatabase",
    "DatabaseHolder",
    "SAMPLE_CONTACTS",
    "build_database",
    "build_engine",
    "get_database",
    "get_repository",
    "prepopulate",
]
