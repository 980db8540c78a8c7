"""
tests/test_drivers.py
Unit tests for schemagen.driver, schemagen.postgres and schemagen.mysql.

Tests cover:
- Catalog row normalization for both dialects
- Driver registry lookup
- The query loop over a real SQLAlchemy connection (SQLite catalog):
  query order, filtered rows dropped, regclass prefixes stripped
- Connection, query and malformed-row failures mapped to schemagen errors
"""

from __future__ import annotations

import pathlib
from typing import List

import pytest
from sqlalchemy.engine import Connection

from schemagen.driver import DRIVERS, QUERY_ORDER, get_driver, make_table_filter
from schemagen.errors import ConfigError, DriverConnectionError, QueryError
from schemagen.mysql import (
    MySQLDriver,
    column_row_from_catalog as mysql_column,
    enum_row_from_catalog,
    group_index_rows,
    parse_enum_labels,
)
from schemagen.postgres import (
    PostgresDriver,
    column_row_from_catalog as pg_column,
    group_enum_rows,
    strip_schema_prefix,
)

SCHEMAS: List[str] = ["public", "audit"]


def _pg_raw(**overrides):
    raw = {
        "schema_name": "public",
        "table_name": "t",
        "column_name": "c",
        "ordinal_position": 1,
        "column_default": None,
        "is_nullable": "NO",
        "data_type": "integer",
        "udt_name": "int4",
        "character_maximum_length": None,
    }
    raw.update(overrides)
    return raw


def _mysql_raw(**overrides):
    raw = {
        "schema_name": "shop",
        "table_name": "orders",
        "column_name": "status",
        "column_default": None,
        "is_nullable": "NO",
        "data_type": "varchar",
        "column_type": "varchar(20)",
        "character_maximum_length": 20,
    }
    raw.update(overrides)
    return raw


# ===========================================================================
# Registry
# ===========================================================================


class TestRegistry:
    def test_builtin_drivers(self) -> None:
        assert DRIVERS["postgres"] is PostgresDriver
        assert DRIVERS["mysql"] is MySQLDriver

    def test_get_driver(self) -> None:
        assert isinstance(get_driver("postgres"), PostgresDriver)

    def test_unknown_driver(self) -> None:
        with pytest.raises(ConfigError, match="sqlserver"):
            get_driver("sqlserver")


# ===========================================================================
# PostgreSQL normalization
# ===========================================================================


class TestPostgresRows:
    def test_plain_column(self) -> None:
        row = pg_column(_pg_raw(is_nullable="YES", character_maximum_length=40))
        assert row.type == "integer"
        assert row.nullable is True
        assert row.length == 40
        assert not row.is_array
        assert not row.user_defined
        assert row.orig["udt_name"] == "int4"

    def test_array_column(self) -> None:
        row = pg_column(_pg_raw(data_type="ARRAY", udt_name="_text"))
        assert row.type == "text"
        assert row.is_array

    def test_user_defined_column(self) -> None:
        row = pg_column(_pg_raw(data_type="USER-DEFINED", udt_name="mood"))
        assert row.type == "mood"
        assert row.user_defined

    @pytest.mark.parametrize(
        "default, expected",
        [(None, False), ("", False), ("nextval('t_id_seq'::regclass)", True)],
    )
    def test_has_default(self, default, expected: bool) -> None:
        assert pg_column(_pg_raw(column_default=default)).has_default is expected

    @pytest.mark.parametrize(
        "schema, table, expected",
        [
            ("public", "users", "users"),
            ("audit", "audit.events", "events"),
            ("audit", "events", "events"),
        ],
    )
    def test_strip_schema_prefix(self, schema: str, table: str, expected: str) -> None:
        assert strip_schema_prefix(schema, table) == expected

    def test_group_enum_rows(self) -> None:
        enums = group_enum_rows(
            [
                {"schema_name": "public", "name": "mood", "label": "sad", "value": 1},
                {"schema_name": "public", "name": "mood", "label": "ok", "value": 2},
                {"schema_name": "audit", "name": "level", "label": "low", "value": 1},
            ]
        )
        assert [(e.schema_name, e.name) for e in enums] == [("public", "mood"), ("audit", "level")]
        assert [v.label for v in enums[0].values] == ["sad", "ok"]
        assert enums[0].table_name is None


# ===========================================================================
# MySQL normalization
# ===========================================================================


class TestMySQLRows:
    @pytest.mark.parametrize(
        "column_type, labels",
        [
            ("enum('new','paid')", ["new", "paid"]),
            ("enum('it''s','x,y')", ["it's", "x,y"]),
            ("enum('')", [""]),
        ],
    )
    def test_parse_enum_labels(self, column_type: str, labels: List[str]) -> None:
        assert parse_enum_labels(column_type) == labels

    def test_enum_column_gets_synthetic_type(self) -> None:
        row = mysql_column(_mysql_raw(data_type="enum", column_type="enum('new','paid')"))
        assert row.type == "orders_status"
        assert row.user_defined

    def test_plain_column(self) -> None:
        row = mysql_column(_mysql_raw(is_nullable="YES", column_default=""))
        assert row.type == "varchar"
        assert row.length == 20
        assert row.nullable
        # an empty-string default is still a default
        assert row.has_default

    def test_enum_row(self) -> None:
        enum = enum_row_from_catalog(
            _mysql_raw(data_type="enum", column_type="enum('new','paid')")
        )
        assert enum.name == "orders_status"
        assert enum.table_name == "orders"
        assert [(v.label, v.value) for v in enum.values] == [("new", 1), ("paid", 2)]

    def test_group_index_rows(self) -> None:
        indexes = group_index_rows(
            [
                {"schema_name": "shop", "table_name": "orders", "name": "PRIMARY", "column_name": "id"},
                {"schema_name": "shop", "table_name": "orders", "name": "ix", "column_name": "a"},
                {"schema_name": "shop", "table_name": "orders", "name": "ix", "column_name": "b"},
                {"schema_name": "shop", "table_name": "orders", "name": "fx", "column_name": None},
            ]
        )
        assert [(i.name, i.columns) for i in indexes] == [
            ("PRIMARY", ["id"]),
            ("ix", ["a", "b"]),
            ("fx", [""]),
        ]


# ===========================================================================
# Query loop over SQLAlchemy
# ===========================================================================


class TestParse:
    def test_reads_every_row_set(self, catalog_driver, catalog_url: str) -> None:
        result = catalog_driver.parse(catalog_url, SCHEMAS)
        assert [(t.schema_name, t.table_name) for t in result.tables] == [
            ("public", "users"),
            ("public", "orders"),
            ("public", "order_items"),
            ("audit", "events"),
        ]
        assert len(result.columns) == 10
        assert len(result.primary_keys) == 5
        assert len(result.foreign_keys) == 3
        assert [e.name for e in result.enums] == ["mood"]

    def test_dialect_conversion_applied(self, catalog_driver, catalog_url: str) -> None:
        result = catalog_driver.parse(catalog_url, SCHEMAS)
        tags = next(c for c in result.columns if c.name == "tags")
        assert tags.type == "text" and tags.is_array
        pkey = next(i for i in result.indexes if i.name == "order_items_pkey")
        assert pkey.columns == ["order_id", "line_no"]
        fk = next(f for f in result.foreign_keys if f.name == "order_items_order_id_fkey")
        assert fk.unique_constraint_position == 0

    def test_regclass_prefix_stripped(self, catalog_driver, catalog_url: str) -> None:
        result = catalog_driver.parse(catalog_url, SCHEMAS)
        events_idx = next(i for i in result.indexes if i.name == "events_pkey")
        assert events_idx.table_name == "events"

    def test_schema_list_bound(self, catalog_driver, catalog_url: str) -> None:
        result = catalog_driver.parse(catalog_url, ["audit"])
        assert {t.schema_name for t in result.tables} == {"audit"}
        assert result.enums == []

    def test_filtered_rows_dropped(self, catalog_driver, catalog_url: str) -> None:
        result = catalog_driver.parse(
            catalog_url, SCHEMAS, make_table_filter(include={"public": ["users"]})
        )
        assert [t.table_name for t in result.tables] == ["users"]
        assert {c.table_name for c in result.columns} == {"users"}
        assert result.foreign_keys == []
        assert [i.name for i in result.indexes] == ["users_pkey"]
        # schema-scoped enums carry no table and are kept
        assert [e.name for e in result.enums] == ["mood"]

    def test_query_order(self, catalog_driver, catalog_url: str, monkeypatch) -> None:
        calls: List[str] = []
        for name in QUERY_ORDER:
            original = getattr(catalog_driver, f"query_{name}")

            def _record(conn: Connection, schemas, _name=name, _orig=original):
                calls.append(_name)
                return _orig(conn, schemas)

            monkeypatch.setattr(catalog_driver, f"query_{name}", _record)

        catalog_driver.parse(catalog_url, SCHEMAS)
        assert calls == list(QUERY_ORDER)

    def test_connection_failure(self, catalog_driver, tmp_path: pathlib.Path) -> None:
        with pytest.raises(DriverConnectionError):
            catalog_driver.parse(f"sqlite:///{tmp_path}/missing/dir/catalog.db", SCHEMAS)

    def test_bad_url(self, catalog_driver) -> None:
        with pytest.raises(DriverConnectionError):
            catalog_driver.parse("not a url", SCHEMAS)

    def test_query_failure_names_query(self, catalog_driver, catalog_url: str) -> None:
        catalog_driver.foreign_keys_sql = "SELECT * FROM no_such_table WHERE 1 IN :schemas"
        with pytest.raises(QueryError, match="foreign keys") as excinfo:
            catalog_driver.parse(catalog_url, SCHEMAS)
        assert excinfo.value.query_name == "foreign keys"

    def test_malformed_row_is_query_error(self, catalog_driver, catalog_url: str) -> None:
        catalog_driver.tables_sql = (
            "SELECT schema_name, '' AS table_name FROM cat_tables "
            "WHERE schema_name IN :schemas"
        )
        with pytest.raises(QueryError, match="malformed catalog row") as excinfo:
            catalog_driver.parse(catalog_url, SCHEMAS)
        assert excinfo.value.query_name == "tables"
