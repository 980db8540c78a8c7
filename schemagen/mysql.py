# File: schemagen/mysql.py
"""
schemagen - MySQL Driver
========================
Reads ``information_schema`` through SQLAlchemy (``mysql+pymysql``).

MySQL has no named enum types: ``ENUM('a','b')`` is declared inline on a
column.  Each such column yields a table-scoped enum named
``<table>_<column>`` whose values are numbered from 1 in declaration
order, and the column's type becomes that enum name.

Every selected column is aliased explicitly; MySQL 8 otherwise returns
``information_schema`` column names in upper case.
"""

from __future__ import annotations

import logging
import re
from typing import ClassVar, Dict, List, Tuple

from sqlalchemy.engine import Connection

from schemagen.database import ColumnRow, EnumRow, EnumValueRow, IndexRow
from schemagen.driver import Driver, RawRow, register_driver

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.mysql")

_ENUM_LABEL_RE: re.Pattern[str] = re.compile(r"'((?:[^']|'')*)'")

# ---------------------------------------------------------------------------
# Catalog queries
# ---------------------------------------------------------------------------

TABLES_SQL: str = """
SELECT table_schema AS schema_name, table_name AS table_name
FROM information_schema.tables
WHERE table_schema IN :schemas
ORDER BY table_schema, table_name
"""

COLUMNS_SQL: str = """
SELECT table_schema AS schema_name, table_name AS table_name,
       column_name AS column_name, ordinal_position AS ordinal_position,
       column_default AS column_default, is_nullable AS is_nullable,
       data_type AS data_type, column_type AS column_type,
       character_maximum_length AS character_maximum_length,
       column_key AS column_key, extra AS extra
FROM information_schema.columns
WHERE table_schema IN :schemas
ORDER BY table_schema, table_name, ordinal_position
"""

PRIMARY_KEYS_SQL: str = """
SELECT table_schema AS schema_name, table_name AS table_name,
       column_name AS column_name, constraint_name AS name
FROM information_schema.key_column_usage
WHERE constraint_name = 'PRIMARY' AND table_schema IN :schemas
ORDER BY table_schema, table_name, ordinal_position
"""

FOREIGN_KEYS_SQL: str = """
SELECT table_schema AS schema_name, table_name AS table_name,
       column_name AS column_name, constraint_name AS name,
       position_in_unique_constraint AS unique_constraint_position,
       referenced_table_schema AS foreign_schema_name,
       referenced_table_name AS foreign_table_name,
       referenced_column_name AS foreign_column_name
FROM information_schema.key_column_usage
WHERE referenced_table_name IS NOT NULL AND table_schema IN :schemas
ORDER BY table_schema, table_name, constraint_name, ordinal_position
"""

INDEXES_SQL: str = """
SELECT table_schema AS schema_name, table_name AS table_name,
       index_name AS name, column_name AS column_name,
       seq_in_index AS seq_in_index
FROM information_schema.statistics
WHERE table_schema IN :schemas
ORDER BY table_schema, table_name, index_name, seq_in_index
"""

ENUMS_SQL: str = """
SELECT table_schema AS schema_name, table_name AS table_name,
       column_name AS column_name, column_type AS column_type
FROM information_schema.columns
WHERE data_type = 'enum' AND table_schema IN :schemas
ORDER BY table_schema, table_name, ordinal_position
"""


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------


def enum_type_name(table_name: str, column_name: str) -> str:
    return f"{table_name}_{column_name}"


def parse_enum_labels(column_type: str) -> List[str]:
    """
    Extract labels from a ``column_type`` such as ``enum('a','it''s')``.

        >>> parse_enum_labels("enum('small','large')")
        ['small', 'large']
    """
    inner: str = column_type[column_type.find("(") + 1 : column_type.rfind(")")]
    return [m.replace("''", "'") for m in _ENUM_LABEL_RE.findall(inner)]


def column_row_from_catalog(raw: RawRow) -> ColumnRow:
    """Normalize one ``information_schema.columns`` row."""
    data_type: str = (raw.get("data_type") or "").lower()
    user_defined: bool = data_type == "enum"
    typ: str = (
        enum_type_name(raw["table_name"], raw["column_name"]) if user_defined else data_type
    )

    return ColumnRow(
        schema_name=raw["schema_name"],
        table_name=raw["table_name"],
        name=raw["column_name"],
        type=typ,
        length=raw.get("character_maximum_length") or 0,
        user_defined=user_defined,
        nullable=raw.get("is_nullable") == "YES",
        has_default=raw.get("column_default") is not None,
        orig=dict(raw),
    )


def enum_row_from_catalog(raw: RawRow) -> EnumRow:
    labels: List[str] = parse_enum_labels(raw["column_type"])
    return EnumRow(
        schema_name=raw["schema_name"],
        table_name=raw["table_name"],
        name=enum_type_name(raw["table_name"], raw["column_name"]),
        values=[EnumValueRow(label=label, value=i) for i, label in enumerate(labels, 1)],
    )


def group_index_rows(rows: List[RawRow]) -> List[IndexRow]:
    """Fold one-row-per-column statistics into one ``IndexRow`` per index."""
    grouped: Dict[Tuple[str, str, str], List[str]] = {}
    for raw in rows:
        key: Tuple[str, str, str] = (raw["schema_name"], raw["table_name"], raw["name"])
        # functional index parts have no column name
        grouped.setdefault(key, []).append(raw.get("column_name") or "")
    return [
        IndexRow(schema_name=schema, table_name=table, name=name, columns=columns)
        for (schema, table, name), columns in grouped.items()
    ]


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


@register_driver
class MySQLDriver(Driver):
    """MySQL / MariaDB backend; a schema here is a MySQL database."""

    name = "mysql"

    tables_sql: ClassVar[str] = TABLES_SQL
    columns_sql: ClassVar[str] = COLUMNS_SQL
    primary_keys_sql: ClassVar[str] = PRIMARY_KEYS_SQL
    foreign_keys_sql: ClassVar[str] = FOREIGN_KEYS_SQL
    indexes_sql: ClassVar[str] = INDEXES_SQL
    enums_sql: ClassVar[str] = ENUMS_SQL

    def query_tables(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        return self.fetch(conn, "tables", self.tables_sql, schema_names)

    def query_columns(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        return self.fetch(conn, "columns", self.columns_sql, schema_names)

    def query_primary_keys(
        self, conn: Connection, schema_names: List[str]
    ) -> List[RawRow]:
        return self.fetch(conn, "primary keys", self.primary_keys_sql, schema_names)

    def query_foreign_keys(
        self, conn: Connection, schema_names: List[str]
    ) -> List[RawRow]:
        return self.fetch(conn, "foreign keys", self.foreign_keys_sql, schema_names)

    def query_indexes(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        return self.fetch(conn, "indexes", self.indexes_sql, schema_names)

    def query_enums(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        return self.fetch(conn, "enums", self.enums_sql, schema_names)

    def convert_columns(self, rows: List[RawRow]) -> List[ColumnRow]:
        return [column_row_from_catalog(row) for row in rows]

    def convert_indexes(self, rows: List[RawRow]) -> List[IndexRow]:
        return group_index_rows(rows)

    def convert_enums(self, rows: List[RawRow]) -> List[EnumRow]:
        return [enum_row_from_catalog(row) for row in rows]


__all__: List[str] = [
    "MySQLDriver",
    "enum_type_name",
    "parse_enum_labels",
    "column_row_from_catalog",
    "enum_row_from_catalog",
    "group_index_rows",
]

logger.debug("schemagen.mysql loaded.")
