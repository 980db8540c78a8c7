# File: schemagen/postgres.py
"""
schemagen - PostgreSQL Driver
=============================
Reads ``information_schema`` and ``pg_catalog`` through SQLAlchemy
(``postgresql+psycopg2``).

Catalog quirks handled here:

- ``data_type = 'ARRAY'``: the element type is ``udt_name`` minus its
  leading underscore and the column is flagged ``is_array``.
- ``data_type = 'USER-DEFINED'``: the type is ``udt_name`` (an enum or
  domain) and the column is flagged ``user_defined``.
- ``indrelid::regclass`` qualifies tables outside ``public`` with their
  schema; the prefix is stripped.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Dict, List, Tuple

from sqlalchemy.engine import Connection

from schemagen.database import ColumnRow, EnumRow, EnumValueRow
from schemagen.driver import Driver, RawRow, register_driver

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.postgres")

# ---------------------------------------------------------------------------
# Catalog queries
# ---------------------------------------------------------------------------

TABLES_SQL: str = """
SELECT table_schema AS schema_name, table_name
FROM information_schema.tables
WHERE table_schema IN :schemas
ORDER BY table_schema, table_name
"""

COLUMNS_SQL: str = """
SELECT table_schema AS schema_name, table_name, column_name, ordinal_position,
       column_default, is_nullable, data_type, udt_name,
       character_maximum_length
FROM information_schema.columns
WHERE table_schema IN :schemas
ORDER BY table_schema, table_name, ordinal_position
"""

PRIMARY_KEYS_SQL: str = """
SELECT k.table_schema AS schema_name, k.table_name, k.column_name,
       k.constraint_name AS name
FROM information_schema.key_column_usage k
JOIN information_schema.table_constraints c
  ON k.table_schema = c.table_schema
 AND k.table_name = c.table_name
 AND k.constraint_name = c.constraint_name
WHERE c.constraint_type = 'PRIMARY KEY' AND k.table_schema IN :schemas
ORDER BY k.table_schema, k.table_name, k.ordinal_position
"""

FOREIGN_KEYS_SQL: str = """
SELECT rc.constraint_schema AS schema_name, lkc.table_name,
       lkc.column_name, lkc.constraint_name AS name,
       lkc.position_in_unique_constraint AS unique_constraint_position,
       rc.unique_constraint_schema AS foreign_schema_name,
       fkc.table_name AS foreign_table_name,
       fkc.column_name AS foreign_column_name
FROM information_schema.referential_constraints rc
JOIN information_schema.key_column_usage lkc
  ON lkc.table_schema = rc.constraint_schema
 AND lkc.constraint_name = rc.constraint_name
JOIN information_schema.key_column_usage fkc
  ON fkc.table_schema = rc.unique_constraint_schema
 AND fkc.ordinal_position = lkc.position_in_unique_constraint
 AND fkc.constraint_name = rc.unique_constraint_name
WHERE rc.constraint_schema IN :schemas
ORDER BY rc.constraint_schema, lkc.table_name, lkc.constraint_name,
         lkc.ordinal_position
"""

INDEXES_SQL: str = """
SELECT n.nspname AS schema_name,
       i.indrelid::regclass::text AS table_name,
       c.relname AS name,
       array_to_string(ARRAY(
           SELECT pg_get_indexdef(i.indexrelid, k + 1, true)
           FROM generate_subscripts(i.indkey, 1) AS k
           ORDER BY k
       ), ',') AS column_names
FROM pg_index AS i
JOIN pg_class AS c ON c.oid = i.indexrelid
JOIN pg_namespace AS n ON n.oid = c.relnamespace
WHERE n.nspname IN :schemas
ORDER BY n.nspname, i.indrelid::regclass::text, c.relname
"""

ENUMS_SQL: str = """
SELECT n.nspname AS schema_name, t.typname AS name, e.enumlabel AS label,
       row_number() OVER (PARTITION BY t.oid ORDER BY e.enumsortorder) AS value
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
JOIN pg_enum e ON e.enumtypid = t.oid
WHERE n.nspname IN :schemas
ORDER BY n.nspname, t.typname, e.enumsortorder
"""


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------


def column_row_from_catalog(raw: RawRow) -> ColumnRow:
    """Normalize one ``information_schema.columns`` row."""
    data_type: str = raw.get("data_type") or ""
    udt_name: str = raw.get("udt_name") or ""
    is_array: bool = False
    user_defined: bool = False
    typ: str = data_type

    if data_type == "ARRAY":
        is_array = True
        typ = udt_name[1:] if udt_name.startswith("_") else udt_name
    elif data_type == "USER-DEFINED":
        user_defined = True
        typ = udt_name

    return ColumnRow(
        schema_name=raw["schema_name"],
        table_name=raw["table_name"],
        name=raw["column_name"],
        type=typ,
        is_array=is_array,
        length=raw.get("character_maximum_length") or 0,
        user_defined=user_defined,
        nullable=raw.get("is_nullable") == "YES",
        has_default=bool(raw.get("column_default")),
        orig=dict(raw),
    )


def strip_schema_prefix(schema_name: str, table_name: str) -> str:
    """Remove the ``schema.`` qualifier ``regclass`` adds outside ``public``."""
    if schema_name != "public":
        prefix: str = f"{schema_name}."
        if table_name.startswith(prefix):
            return table_name[len(prefix):]
    return table_name


def group_enum_rows(rows: List[RawRow]) -> List[EnumRow]:
    """Fold one-row-per-label results into one ``EnumRow`` per type."""
    grouped: Dict[Tuple[str, str], List[EnumValueRow]] = {}
    for raw in rows:
        key: Tuple[str, str] = (raw["schema_name"], raw["name"])
        grouped.setdefault(key, []).append(
            EnumValueRow(label=raw["label"], value=int(raw["value"]))
        )
    return [
        EnumRow(schema_name=schema, name=name, values=values)
        for (schema, name), values in grouped.items()
    ]


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


@register_driver
class PostgresDriver(Driver):
    """PostgreSQL backend."""

    name = "postgres"

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
        rows: List[RawRow] = self.fetch(conn, "indexes", self.indexes_sql, schema_names)
        for row in rows:
            row["table_name"] = strip_schema_prefix(row["schema_name"], row["table_name"])
        return rows

    def query_enums(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        return self.fetch(conn, "enums", self.enums_sql, schema_names)

    def convert_columns(self, rows: List[RawRow]) -> List[ColumnRow]:
        return [column_row_from_catalog(row) for row in rows]

    def convert_indexes(self, rows: List[RawRow]) -> List[Any]:
        return super().convert_indexes(
            [
                {
                    "schema_name": row["schema_name"],
                    "table_name": row["table_name"],
                    "name": row["name"],
                    "columns": (row["column_names"] or "").split(","),
                }
                for row in rows
            ]
        )

    def convert_enums(self, rows: List[RawRow]) -> List[EnumRow]:
        return group_enum_rows(rows)


__all__: List[str] = [
    "PostgresDriver",
    "column_row_from_catalog",
    "strip_schema_prefix",
    "group_enum_rows",
]

logger.debug("schemagen.postgres loaded.")
