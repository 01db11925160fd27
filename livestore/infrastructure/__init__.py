"""
Infrastructure package for livestore.

Centralizes storage concerns: the engine contract, conflict policies,
invalidation tracking and the in-memory engine. The PostgreSQL engine lives
in `livestore.infrastructure.postgres` and is imported on demand.
"""

from livestore.infrastructure.engine import (
    ConflictPolicy,
    ConstraintViolation,
    InvalidationTracker,
    StorageEngine,
    StorageError,
)
from livestore.infrastructure.memory import InMemoryEngine

__all__ = [
    "ConflictPolicy",
    "ConstraintViolation",
    "InMemoryEngine",
    "InvalidationTracker",
    "StorageEngine",
    "StorageError",
]
