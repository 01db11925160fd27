import pytest
from pydantic import ValidationError

from livestore import config
from livestore.database import build_engine
from livestore.infrastructure.memory import InMemoryEngine
from livestore.repository import DEFAULT_WRITE_WORKERS


def test_get_settings_defaults(monkeypatch):
    for var in ("LIVESTORE_BACKEND", "LIVESTORE_WRITE_WORKERS", "DB_NAME", "LIVESTORE_PREPOPULATE"):
        monkeypatch.delenv(var, raising=False)
    settings = config.get_settings()
    assert settings.backend == "memory"
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_name == "livestore"
    assert settings.write_workers == DEFAULT_WRITE_WORKERS
    assert settings.allow_main_thread_queries is False
    assert settings.prepopulate is False


def test_get_settings_is_cached():
    assert config.get_settings() is config.get_settings()


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("LIVESTORE_WRITE_WORKERS", "2")
    monkeypatch.setenv("LIVESTORE_ALLOW_MAIN_THREAD", "true")
    settings = config.Settings()
    assert settings.write_workers == 2
    assert settings.allow_main_thread_queries is True


def test_settings_reject_empty_writer_pool():
    with pytest.raises(ValidationError):
        config.Settings(write_workers=0)


def test_memory_backend_builds_memory_engine():
    assert isinstance(build_engine(config.Settings(backend="memory")), InMemoryEngine)
