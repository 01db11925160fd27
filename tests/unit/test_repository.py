from __future__ import annotations

import threading

import pytest

from livestore.database import ContactDatabase
from livestore.domain.models import Contact
from livestore.domain.schema import CONTACT_SCHEMA
from livestore.infrastructure.engine import ConflictPolicy, StorageError
from livestore.infrastructure.memory import InMemoryEngine
from livestore.repository import ContactRepository, WriteExecutor, wait_all

DISTINCT_CONTACTS = 10
WAIT_SECONDS = 5.0


class _GatedEngine(InMemoryEngine):
    """Engine whose inserts block until the gate opens."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = threading.Event()

    def insert(self, schema, row, policy=ConflictPolicy.ABORT):  # type: ignore[override]
        self.gate.wait(WAIT_SECONDS)
        return super().insert(schema, row, policy)


class _FailingEngine(InMemoryEngine):
    def insert(self, schema, row, policy=None):  # type: ignore[override]
        raise StorageError("disk full")


def test_concurrent_inserts_with_duplicates(database: ContactDatabase) -> None:
    repository = database.repository()
    contacts = [Contact(name=f"Person {i:02d}", occupation="Engineer") for i in range(DISTINCT_CONTACTS)]
    duplicates = contacts[:3]

    wait_all([repository.insert(c) for c in contacts + duplicates], timeout=WAIT_SECONDS)

    assert database.contact_dao().count() == DISTINCT_CONTACTS


def test_duplicate_insert_resolves_without_error(database: ContactDatabase, context, make_recorder) -> None:
    repository = database.repository()
    recorder = make_recorder()
    repository.all_contacts.subscribe(context, recorder)
    context.activate()

    repository.insert(Contact(name="Ada", occupation="Engineer")).result(WAIT_SECONDS)
    duplicate = repository.insert(Contact(name="Ada", occupation="Engineer"))

    assert duplicate.result(WAIT_SECONDS) is None
    database.flush()
    contacts = recorder.wait_for(lambda v: len(v) == 1)
    assert contacts[0].name == "Ada"
    assert contacts[0].id is not None


def test_delete_all_converges_to_empty_list(database: ContactDatabase, context, make_recorder) -> None:
    repository = database.repository()
    recorder = make_recorder()
    repository.all_contacts.subscribe(context, recorder)
    context.activate()
    wait_all(
        [
            repository.insert(Contact(name="Ada", occupation="Engineer")),
            repository.insert(Contact(name="Grace", occupation="Admiral")),
        ],
        timeout=WAIT_SECONDS,
    )
    recorder.wait_for(lambda v: len(v) == 2)

    repository.delete_all().result(WAIT_SECONDS)

    recorder.wait_for(lambda v: v == [])


def test_writes_do_not_block_caller() -> None:
    engine = _GatedEngine()
    database = ContactDatabase(engine, WriteExecutor(max_workers=4))
    try:
        future = database.repository().insert(Contact(name="Ada", occupation="Engineer"))
        assert future.done() is False

        engine.gate.set()
        future.result(WAIT_SECONDS)
        assert engine.count(CONTACT_SCHEMA) == 1
    finally:
        engine.gate.set()
        database.close()


def test_failed_write_is_carried_by_future_and_logged(caplog) -> None:
    database = ContactDatabase(_FailingEngine(), WriteExecutor(max_workers=2))
    try:
        with caplog.at_level("ERROR", logger="livestore.repository"):
            future = database.repository().insert(Contact(name="Ada", occupation="Engineer"))
            with pytest.raises(StorageError, match="disk full"):
                future.result(WAIT_SECONDS)
            database.write_executor.shutdown(wait=True)

        assert "[WRITE FAILED] insert" in caplog.text
    finally:
        database.close()


def test_single_worker_commits_in_submission_order(engine: InMemoryEngine, dispatcher) -> None:
    database = ContactDatabase(engine, WriteExecutor(max_workers=1), dispatcher=dispatcher)
    try:
        repository = database.repository()
        futures = [
            repository.insert(Contact(name="A", occupation="x")),
            repository.delete_all(),
            repository.insert(Contact(name="B", occupation="x")),
        ]
        wait_all(futures, timeout=WAIT_SECONDS)

        snapshot = database.write_executor.submit(database.contact_dao().get_all_snapshot).result(
            WAIT_SECONDS
        )
        assert [c.name for c in snapshot] == ["B"]
    finally:
        database.close()


def test_repository_works_when_main_thread_access_is_refused(context, make_recorder) -> None:
    database = ContactDatabase(InMemoryEngine(), allow_main_thread_queries=False)
    try:
        repository = database.repository()
        recorder = make_recorder()
        repository.all_contacts.subscribe(context, recorder)
        context.activate()

        repository.insert(Contact(name="Ada", occupation="Engineer")).result(WAIT_SECONDS)

        contacts = recorder.wait_for(lambda v: len(v) == 1)
        assert contacts[0].name == "Ada"
    finally:
        database.close()


def test_repository_exposes_one_live_view(database: ContactDatabase) -> None:
    repository = ContactRepository(database.contact_dao(), database.write_executor)
    assert repository.all_contacts is repository.all_contacts


def test_write_executor_requires_a_worker() -> None:
    with pytest.raises(ValueError):
        WriteExecutor(max_workers=0)


def test_observer_may_wait_on_a_write(database: ContactDatabase, context, make_recorder) -> None:
    repository = database.repository()
    recorder = make_recorder()
    outcome = []

    def on_change(contacts) -> None:
        if contacts == [] and not outcome:
            try:
                repository.insert(Contact(name="Ada", occupation="Engineer")).result(WAIT_SECONDS)
                outcome.append("stored")
            except Exception as exc:  # noqa: BLE001
                outcome.append(type(exc).__name__)
        recorder(contacts)

    repository.all_contacts.subscribe(context, on_change)
    context.activate()

    contacts = recorder.wait_for(lambda v: len(v) == 1)
    assert outcome == ["stored"]
    assert contacts[0].name == "Ada"
