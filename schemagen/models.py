# File: schemagen/models.py
"""
schemagen - Relational Graph Entities
=====================================
The normalized, driver-independent model that templates render against:

    Database → Schema → Table → Column
                     ↘ Enum → EnumValue

Entities are plain dataclasses built once per run by
``schemagen.builder.ModelBuilder`` and treated as read-only afterwards.

Back-references (``Column.table``, ``Table.schema``, ``ForeignColumn.column``
...) are non-owning: they are excluded from ``repr`` and entities compare by
identity, so walking or printing the cyclic graph never recurses.

Primary-key and foreign-key flags on a column are *derived* properties,
computed from the table's ``primary_keys`` list and the column's foreign
key link, so they can never disagree with the table-level maps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.models")


# ---------------------------------------------------------------------------
# Ordered collections exposed to templates
# ---------------------------------------------------------------------------


class Strings(List[str]):
    """A list of strings with a printf-style helper for templates."""

    def sprintf(self, fmt: str) -> "Strings":
        """Apply ``fmt % item`` to every string, e.g. ``sprintf('"%s"')``."""
        return Strings(fmt % s for s in self)


class _Named(list):
    """List of entities carrying ``name`` / ``db_name`` attributes."""

    def names(self) -> Strings:
        return Strings(item.name for item in self)

    def db_names(self) -> Strings:
        return Strings(item.db_name for item in self)


class Columns(_Named):
    """Ordered columns of a table, index or primary key."""


class Tables(_Named):
    """Ordered tables of a schema."""


class Enums(_Named):
    """Ordered enums of a schema."""


# ---------------------------------------------------------------------------
# Foreign key link records
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class ForeignColumn:
    """One column pair of a foreign-key constraint."""

    name: str
    column_name: str
    foreign_column_name: str
    unique_constraint_position: int = 0
    column: Optional["Column"] = field(default=None, repr=False)
    foreign_column: Optional["Column"] = field(default=None, repr=False)


@dataclass(eq=False, slots=True)
class ForeignTable:
    """The pair of tables joined by one foreign-key constraint."""

    name: str
    table_name: str
    foreign_table_name: str
    table: Optional["Table"] = field(default=None, repr=False)
    foreign_table: Optional["Table"] = field(default=None, repr=False)


# ---------------------------------------------------------------------------
# Column
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class Column:
    """A column of a table."""

    name: str
    db_name: str
    table: "Table" = field(repr=False)
    type: str = ""
    db_type: str = ""
    is_array: bool = False
    length: int = 0
    user_defined: bool = False
    nullable: bool = False
    has_default: bool = False
    enum: Optional["Enum"] = field(default=None, repr=False)
    foreign_column: Optional[ForeignColumn] = field(default=None, repr=False)
    foreign_key_references: List[str] = field(default_factory=list)
    foreign_columns_by_foreign_key_reference: Dict[str, ForeignColumn] = field(
        default_factory=dict, repr=False
    )
    orig: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_primary_key(self) -> bool:
        return any(pk is self for pk in self.table.primary_keys)

    @property
    def is_foreign_key(self) -> bool:
        return self.foreign_column is not None

    @property
    def is_foreign_key_reference(self) -> bool:
        return bool(self.foreign_key_references)


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class Index:
    """A named index; column order is the order the database reports."""

    name: str
    db_name: str
    table: "Table" = field(repr=False)
    columns: Columns = field(default_factory=Columns)


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class Table:
    """A table of a schema."""

    name: str
    db_name: str
    schema: "Schema" = field(repr=False)
    columns: Columns = field(default_factory=Columns)
    columns_by_name: Dict[str, Column] = field(default_factory=dict, repr=False)
    primary_keys: Columns = field(default_factory=Columns, repr=False)
    indexes: List[Index] = field(default_factory=list, repr=False)
    foreign_keys: List[str] = field(default_factory=list)
    foreign_key_references: List[str] = field(default_factory=list)
    foreign_columns_by_foreign_key: Dict[str, List[ForeignColumn]] = field(
        default_factory=dict, repr=False
    )
    foreign_tables_by_foreign_key: Dict[str, ForeignTable] = field(
        default_factory=dict, repr=False
    )
    foreign_tables_by_foreign_key_reference: Dict[str, ForeignTable] = field(
        default_factory=dict, repr=False
    )

    @property
    def has_primary_key(self) -> bool:
        return len(self.primary_keys) > 0

    @property
    def has_foreign_keys(self) -> bool:
        return len(self.foreign_columns_by_foreign_key) > 0

    @property
    def has_foreign_key_references(self) -> bool:
        return len(self.foreign_key_references) > 0

    def add_column(self, column: Column) -> None:
        self.columns.append(column)
        self.columns_by_name[column.db_name] = column


# ---------------------------------------------------------------------------
# Enum
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class EnumValue:
    """One label of an enum; ``value`` is its sort order."""

    name: str
    db_name: str
    value: int


@dataclass(eq=False, slots=True)
class Enum:
    """An enumerated type of a schema (or of a table, for MySQL)."""

    name: str
    db_name: str
    schema: "Schema" = field(repr=False)
    table: Optional[Table] = field(default=None, repr=False)
    values: List[EnumValue] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Schema & Database
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class Schema:
    """A database namespace."""

    name: str
    db_name: str
    tables: Tables = field(default_factory=Tables)
    enums: Enums = field(default_factory=Enums)
    tables_by_name: Dict[str, Table] = field(default_factory=dict, repr=False)
    enums_by_name: Dict[str, Enum] = field(default_factory=dict, repr=False)

    def add_table(self, table: Table) -> None:
        self.tables.append(table)
        self.tables_by_name[table.db_name] = table

    def add_enum(self, enum: Enum) -> None:
        self.enums.append(enum)
        self.enums_by_name[enum.db_name] = enum


@dataclass(eq=False, slots=True)
class Database:
    """Root of the graph: every introspected schema, in configured order."""

    schemas: List[Schema] = field(default_factory=list)
    schemas_by_name: Dict[str, Schema] = field(default_factory=dict, repr=False)

    def add_schema(self, schema: Schema) -> None:
        self.schemas.append(schema)
        self.schemas_by_name[schema.db_name] = schema

    def iter_tables(self) -> Iterable[Table]:
        for schema in self.schemas:
            yield from schema.tables

    def iter_enums(self) -> Iterable[Enum]:
        for schema in self.schemas:
            yield from schema.enums

    def __repr__(self) -> str:
        tables: int = sum(len(s.tables) for s in self.schemas)
        enums: int = sum(len(s.enums) for s in self.schemas)
        return f"<Database {len(self.schemas)} schemas, {tables} tables, {enums} enums>"


__all__: List[str] = [
    "Strings",
    "Columns",
    "Tables",
    "Enums",
    "ForeignColumn",
    "ForeignTable",
    "Column",
    "Index",
    "Table",
    "EnumValue",
    "Enum",
    "Schema",
    "Database",
]

logger.debug("schemagen.models loaded: %d public symbols.", len(__all__))
