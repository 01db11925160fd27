"""
Pytest configuration for livestore.

Provides fixtures for:
- An isolated dispatcher and in-memory database per test
- Observer contexts and value recorders for observation tests
- PostgreSQL connection details for integration tests
"""

from __future__ import annotations

import os
import threading
from typing import Any, Callable, Generator, List

import psycopg
import pytest

from livestore.config import Settings, get_settings
from livestore.database import ContactDatabase, DatabaseHolder
from livestore.infrastructure.memory import InMemoryEngine
from livestore.observable.dispatcher import Dispatcher
from livestore.observable.lifecycle import ObserverContext
from livestore.repository import WriteExecutor

WAIT_SECONDS = 5.0


class Recorder:
    """Callable observer that records every delivered value."""

    def __init__(self) -> None:
        self.values: List[Any] = []
        self._cond = threading.Condition()

    def __call__(self, value: Any) -> None:
        with self._cond:
            self.values.append(value)
            self._cond.notify_all()

    @property
    def calls(self) -> int:
        with self._cond:
            return len(self.values)

    @property
    def last(self) -> Any:
        with self._cond:
            return self.values[-1]

    def wait_for(self, predicate: Callable[[Any], bool], timeout: float = WAIT_SECONDS) -> Any:
        """Wait until the latest delivered value satisfies `predicate`."""
        with self._cond:
            ok = self._cond.wait_for(
                lambda: bool(self.values) and predicate(self.values[-1]), timeout=timeout
            )
            assert ok, f"Condition not met within {timeout}s; delivered: {self.values!r}"
            return self.values[-1]


@pytest.fixture(autouse=True)
def _isolate_process_state() -> Generator[None, None, None]:
    get_settings.cache_clear()
    DatabaseHolder.reset()
    yield
    DatabaseHolder.reset()
    get_settings.cache_clear()


@pytest.fixture
def dispatcher() -> Generator[Dispatcher, None, None]:
    dispatcher = Dispatcher("test-main")
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def engine() -> InMemoryEngine:
    return InMemoryEngine()


@pytest.fixture
def database(engine: InMemoryEngine, dispatcher: Dispatcher) -> Generator[ContactDatabase, None, None]:
    """
    In-memory database whose DAO may be called from the test thread.
    """
    database = ContactDatabase(
        engine,
        WriteExecutor(max_workers=4),
        allow_main_thread_queries=True,
        dispatcher=dispatcher,
    )
    yield database
    database.close()


@pytest.fixture
def context() -> Generator[ObserverContext, None, None]:
    context = ObserverContext("test")
    yield context
    if not context.is_destroyed:
        context.destroy()


@pytest.fixture
def make_recorder() -> Callable[[], Recorder]:
    return Recorder


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        backend="postgres",
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "livestore"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False
