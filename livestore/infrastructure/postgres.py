"""
PostgreSQL storage engine for livestore.

Rows are written through a psycopg `ConnectionPool`; statements are composed
with `psycopg.sql` from the table description. Opening the pool retries
transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from livestore.config import Settings, get_settings
from livestore.domain.schema import TableSchema
from livestore.infrastructure.engine import (
    ConflictPolicy,
    ConstraintViolation,
    StorageEngine,
    StorageError,
)
from livestore.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def _open_pool(dsn: str, min_size: int, max_size: int) -> ConnectionPool:
    """
    Open a connection pool, retrying up to 3 times for transient errors.

    Raises
    ------
    psycopg.OperationalError
        If the pool cannot be filled after all retry attempts.
    """
    pool = ConnectionPool(conninfo=dsn, min_size=min_size, max_size=max_size, open=False)
    try:
        pool.open(wait=True, timeout=10.0)
    except Exception:
        pool.close()
        raise
    return pool


class PostgresEngine(StorageEngine):
    """
    Engine backed by a PostgreSQL database.

    REPLACE follows delete-then-insert semantics so a replaced row receives a
    fresh generated key, matching the in-memory engine.
    """

    name = "postgres"

    def __init__(
        self,
        dsn: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        pool: Optional[ConnectionPool] = None,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self._pool = pool or _open_pool(
            dsn or build_dsn(settings),
            min_size=min_size or settings.db_pool_min,
            max_size=max_size or settings.db_pool_max,
        )

    def create_table(self, schema: TableSchema) -> None:
        column_defs = []
        for col in schema.columns:
            parts = [sql.Identifier(col.name), sql.SQL(col.sql_type)]
            if col.primary_key:
                parts.append(sql.SQL("PRIMARY KEY"))
            elif not col.nullable:
                parts.append(sql.SQL("NOT NULL"))
            column_defs.append(sql.SQL(" ").join(parts))
        if schema.unique:
            column_defs.append(
                sql.SQL("UNIQUE ({})").format(
                    sql.SQL(", ").join(map(sql.Identifier, schema.unique))
                )
            )
        stmt = sql.SQL("CREATE TABLE IF NOT EXISTS {} ({})").format(
            sql.Identifier(schema.name), sql.SQL(", ").join(column_defs)
        )
        with self._pool.connection() as conn:
            conn.execute(stmt)
        log.debug("Table ensured", extra={"table": schema.name, "engine": self.name})

    def insert(
        self,
        schema: TableSchema,
        row: Dict[str, Any],
        policy: ConflictPolicy = ConflictPolicy.ABORT,
    ) -> Optional[int]:
        columns = list(row)
        pk = schema.primary_key.name
        stmt = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            sql.Identifier(schema.name),
            sql.SQL(", ").join(map(sql.Identifier, columns)),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        if policy is ConflictPolicy.IGNORE:
            stmt += sql.SQL(" ON CONFLICT DO NOTHING")
        stmt += sql.SQL(" RETURNING {}").format(sql.Identifier(pk))

        try:
            with self._pool.connection() as conn:
                with conn.transaction():
                    if policy is ConflictPolicy.REPLACE:
                        conn.execute(
                            self._delete_conflicting(schema, row),
                            self._key_params(schema, row),
                        )
                    result = conn.execute(stmt, [row[c] for c in columns]).fetchone()
                    if result is not None and pk in row and schema.generated_column is not None:
                        conn.execute(self._sync_sequence(schema), [schema.name, pk])
        except psycopg.errors.UniqueViolation as exc:
            raise ConstraintViolation(
                schema.name, tuple(row.get(c) for c in schema.conflict_columns)
            ) from exc
        except psycopg.Error as exc:
            raise StorageError(f"Insert into '{schema.name}' failed: {exc}") from exc

        if result is None:
            log.debug("Insert ignored on conflict", extra={"table": schema.name})
            return None
        self._notify_invalidated(schema.name)
        return result[0]

    def _delete_conflicting(self, schema: TableSchema, row: Dict[str, Any]) -> sql.Composed:
        clauses = [
            sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder())
            for c in schema.conflict_columns
        ]
        where = sql.SQL(" AND ").join(clauses)
        if row.get(schema.primary_key.name) is not None:
            where = sql.SQL("({}) OR {} = {}").format(
                where, sql.Identifier(schema.primary_key.name), sql.Placeholder()
            )
        return sql.SQL("DELETE FROM {} WHERE {}").format(sql.Identifier(schema.name), where)

    def _sync_sequence(self, schema: TableSchema) -> sql.Composed:
        """Move the key sequence past an explicitly supplied id."""
        pk = sql.Identifier(schema.primary_key.name)
        return sql.SQL(
            "SELECT setval(pg_get_serial_sequence(%s, %s), "
            "GREATEST((SELECT MAX({}) FROM {}), 1))"
        ).format(pk, sql.Identifier(schema.name))

    def _key_params(self, schema: TableSchema, row: Dict[str, Any]) -> List[Any]:
        params = [row.get(c) for c in schema.conflict_columns]
        if row.get(schema.primary_key.name) is not None:
            params.append(row[schema.primary_key.name])
        return params

    def delete_all(self, schema: TableSchema) -> int:
        stmt = sql.SQL("DELETE FROM {}").format(sql.Identifier(schema.name))
        try:
            with self._pool.connection() as conn:
                removed = conn.execute(stmt).rowcount
        except psycopg.Error as exc:
            raise StorageError(f"Delete from '{schema.name}' failed: {exc}") from exc
        if removed:
            self._notify_invalidated(schema.name)
        return removed

    def query_all(
        self,
        schema: TableSchema,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        stmt = sql.SQL("SELECT {} FROM {}").format(
            sql.SQL(", ").join(map(sql.Identifier, schema.column_names)),
            sql.Identifier(schema.name),
        )
        if order_by is not None:
            schema.column(order_by)
            direction = sql.SQL("DESC" if descending else "ASC")
            stmt += sql.SQL(" ORDER BY {} {}, {} {}").format(
                sql.Identifier(order_by),
                direction,
                sql.Identifier(schema.primary_key.name),
                direction,
            )
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(stmt)
                return cur.fetchall()

    def count(self, schema: TableSchema) -> int:
        stmt = sql.SQL("SELECT COUNT(*) FROM {}").format(sql.Identifier(schema.name))
        with self._pool.connection() as conn:
            return conn.execute(stmt).fetchone()[0]

    def close(self) -> None:
        self._pool.close()


__all__ = ["PostgresEngine", "build_dsn"]
