"""
livestore - observable contact storage with background writes.

This package implements the repository/view-model persistence pattern:

- A typed access layer (`ContactDao`) over a pluggable storage engine
- Lifecycle-aware observable cells (`LiveData`) that push query results
- A repository that runs every write on a bounded worker pool
- A process-wide database handle created exactly once

Storage engines ship for in-process memory and PostgreSQL.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from livestore.config import Settings, get_settings
from livestore.dao import ContactDao, MainThreadAccessError
from livestore.database import (
    ContactDatabase,
    DatabaseHolder,
    build_database,
    get_database,
    get_repository,
)
from livestore.domain import CONTACT_SCHEMA, Column, Contact, RecordMapper, TableSchema
from livestore.infrastructure import (
    ConflictPolicy,
    ConstraintViolation,
    InMemoryEngine,
    StorageEngine,
    StorageError,
)
from livestore.observable import (
    LifecycleState,
    LiveData,
    MutableLiveData,
    ObserverContext,
    Subscription,
)
from livestore.repository import ContactRepository, WriteExecutor
from livestore.utils.logging import configure_logging, get_logger
from livestore.viewmodel import ContactViewModel, ViewModel

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Contact",
    "CONTACT_SCHEMA",
    "Column",
    "RecordMapper",
    "TableSchema",
    # Storage
    "ConflictPolicy",
    "ConstraintViolation",
    "InMemoryEngine",
    "StorageEngine",
    "StorageError",
    # Access layer and database
    "ContactDao",
    "MainThreadAccessError",
    "ContactDatabase",
    "DatabaseHolder",
    "build_database",
    "get_database",
    "get_repository",
    # Observation
    "LifecycleState",
    "LiveData",
    "MutableLiveData",
    "ObserverContext",
    "Subscription",
    # Mediation
    "ContactRepository",
    "WriteExecutor",
    "ContactViewModel",
    "ViewModel",
    # Logging
    "configure_logging",
    "get_logger",
]
