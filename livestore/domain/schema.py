"""
Explicit table descriptions and the generic record mapper.

A `TableSchema` lists the columns of a table together with its primary key,
uniqueness key and default ordering. Storage engines consume it to create
tables and to resolve insert conflicts; `RecordMapper` converts between
pydantic models and plain row dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)

_SQL_TYPES = {
    int: "BIGINT",
    str: "TEXT",
    float: "DOUBLE PRECISION",
    bool: "BOOLEAN",
}


@dataclass(frozen=True)
class Column:
    name: str
    type: type = str
    primary_key: bool = False
    autogenerate: bool = False
    nullable: bool = False

    @property
    def sql_type(self) -> str:
        if self.autogenerate:
            return "BIGSERIAL"
        return _SQL_TYPES[self.type]


@dataclass(frozen=True)
class TableSchema:
    """
    Description of one table.

    Attributes
    ----------
    name : str
        Table (collection) name.
    columns : tuple[Column, ...]
        Columns in declaration order.
    unique : tuple[str, ...]
        Column names forming the uniqueness key used for conflict resolution.
        Empty means only the primary key is unique.
    order_by : str | None
        Default ordering column for full-table queries.
    """

    name: str
    columns: Tuple[Column, ...]
    unique: Tuple[str, ...] = field(default_factory=tuple)
    order_by: Optional[str] = None

    def __post_init__(self) -> None:
        names = [c.name for c in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate column in table '{self.name}'")
        primary = [c for c in self.columns if c.primary_key]
        if len(primary) != 1:
            raise ValueError(f"Table '{self.name}' must declare exactly one primary key")
        for name in (*self.unique, *([self.order_by] if self.order_by else [])):
            if name not in names:
                raise ValueError(f"Unknown column '{name}' in table '{self.name}'")

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def primary_key(self) -> Column:
        return next(c for c in self.columns if c.primary_key)

    @property
    def generated_column(self) -> Optional[Column]:
        return next((c for c in self.columns if c.autogenerate), None)

    @property
    def conflict_columns(self) -> Tuple[str, ...]:
        return self.unique or (self.primary_key.name,)

    def column(self, name: str) -> Column:
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(f"Unknown column '{name}' in table '{self.name}'")


class RecordMapper(Generic[M]):
    """Convert between model instances and row dictionaries for one table."""

    def __init__(self, schema: TableSchema, model: Type[M]) -> None:
        missing = set(schema.column_names) - set(model.model_fields)
        if missing:
            raise ValueError(
                f"Model {model.__name__} lacks columns {sorted(missing)} of '{schema.name}'"
            )
        self.schema = schema
        self.model = model

    def to_row(self, record: M) -> Dict[str, Any]:
        row = {name: getattr(record, name) for name in self.schema.column_names}
        generated = self.schema.generated_column
        if generated is not None and row.get(generated.name) is None:
            # Engines assign generated keys; an unassigned key is not part of the row.
            del row[generated.name]
        for col in self.schema.columns:
            if col.name in row and row[col.name] is None and not col.nullable:
                raise ValueError(f"Column '{col.name}' of '{self.schema.name}' is not nullable")
        return row

    def from_row(self, row: Dict[str, Any]) -> M:
        return self.model(**{name: row[name] for name in self.schema.column_names})

    def conflict_key(self, row: Dict[str, Any]) -> Tuple[Any, ...]:
        return tuple(row.get(name) for name in self.schema.conflict_columns)


CONTACT_SCHEMA = TableSchema(
    name="contacts",
    columns=(
        Column("id", int, primary_key=True, autogenerate=True),
        Column("name", str),
        Column("occupation", str),
    ),
    unique=("name", "occupation"),
    order_by="name",
)


__all__ = ["Column", "TableSchema", "RecordMapper", "CONTACT_SCHEMA"]
