"""
tests/conftest.py
Shared fixtures for the schemagen test suite.

Two views of the same small "shop" database are provided:

- ``introspection_result``: row models built directly in Python, for
  exercising ``ModelBuilder`` without any database.
- ``catalog_url``: a SQLite file holding the raw PostgreSQL-shaped catalog
  rows, read through ``CatalogDriver`` (a ``PostgresDriver`` whose queries
  target the SQLite tables), for exercising the driver and the CLI end to
  end over SQLAlchemy.

No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import logging
import pathlib
from typing import Any, Callable, Dict, List, Optional

import pytest
import yaml
from sqlalchemy import create_engine, text
from sqlalchemy.pool import NullPool

from schemagen.builder import ModelBuilder
from schemagen.config import ConfigData
from schemagen.driver import DRIVERS
from schemagen.database import (
    ColumnRow,
    EnumRow,
    EnumValueRow,
    ForeignKeyRow,
    IndexRow,
    IntrospectionResult,
    PrimaryKeyRow,
    TableRow,
)
from schemagen.models import Database
from schemagen.postgres import PostgresDriver
from schemagen.templates import create_environment

SCHEMAS: List[str] = ["public", "audit"]


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _restore_schemagen_logger():
    """The CLI reconfigures the ``schemagen`` logger; put it back after each test."""
    lg: logging.Logger = logging.getLogger("schemagen")
    saved_level: int = lg.level
    saved_handlers: List[logging.Handler] = list(lg.handlers)
    saved_propagate: bool = lg.propagate
    yield
    lg.setLevel(saved_level)
    lg.handlers[:] = saved_handlers
    lg.propagate = saved_propagate


# ---------------------------------------------------------------------------
# Row-model fixtures
# ---------------------------------------------------------------------------


def _column(
    schema: str,
    table: str,
    name: str,
    typ: str,
    *,
    nullable: bool = False,
    has_default: bool = False,
    is_array: bool = False,
    user_defined: bool = False,
    length: int = 0,
) -> ColumnRow:
    return ColumnRow(
        schema_name=schema,
        table_name=table,
        name=name,
        type=typ,
        is_array=is_array,
        length=length,
        user_defined=user_defined,
        nullable=nullable,
        has_default=has_default,
    )


@pytest.fixture()
def introspection_result() -> IntrospectionResult:
    """Fresh row sets for the shop database; tests may append to the lists."""
    return IntrospectionResult(
        tables=[
            TableRow(schema_name="public", table_name="users"),
            TableRow(schema_name="public", table_name="orders"),
            TableRow(schema_name="public", table_name="order_items"),
            TableRow(schema_name="audit", table_name="events"),
        ],
        columns=[
            _column("public", "users", "id", "integer", has_default=True),
            _column("public", "users", "email", "character varying", length=255),
            _column("public", "users", "mood", "mood", nullable=True, user_defined=True),
            _column("public", "users", "manager_id", "integer", nullable=True),
            _column("public", "orders", "id", "integer", has_default=True),
            _column("public", "orders", "user_id", "integer"),
            _column("public", "orders", "total", "numeric", nullable=True),
            _column("public", "orders", "tags", "text", nullable=True, is_array=True),
            _column("public", "order_items", "order_id", "integer"),
            _column("public", "order_items", "line_no", "integer"),
            _column("public", "order_items", "quantity", "integer", has_default=True),
            _column("audit", "events", "id", "bigint"),
            _column("audit", "events", "user_id", "integer", nullable=True),
            _column("audit", "events", "payload", "jsonb", nullable=True),
        ],
        primary_keys=[
            PrimaryKeyRow(schema_name="public", table_name="users", column_name="id", name="users_pkey"),
            PrimaryKeyRow(schema_name="public", table_name="orders", column_name="id", name="orders_pkey"),
            PrimaryKeyRow(
                schema_name="public", table_name="order_items",
                column_name="order_id", name="order_items_pkey",
            ),
            PrimaryKeyRow(
                schema_name="public", table_name="order_items",
                column_name="line_no", name="order_items_pkey",
            ),
            PrimaryKeyRow(schema_name="audit", table_name="events", column_name="id", name="events_pkey"),
        ],
        foreign_keys=[
            ForeignKeyRow(
                schema_name="public", table_name="users", column_name="manager_id",
                name="users_manager_id_fkey", unique_constraint_position=1,
                foreign_schema_name="public", foreign_table_name="users",
                foreign_column_name="id",
            ),
            ForeignKeyRow(
                schema_name="public", table_name="orders", column_name="user_id",
                name="orders_user_id_fkey", unique_constraint_position=1,
                foreign_schema_name="public", foreign_table_name="users",
                foreign_column_name="id",
            ),
            ForeignKeyRow(
                schema_name="public", table_name="order_items", column_name="order_id",
                name="order_items_order_id_fkey", unique_constraint_position=1,
                foreign_table_name="orders", foreign_column_name="id",
            ),
            ForeignKeyRow(
                schema_name="audit", table_name="events", column_name="user_id",
                name="events_user_id_fkey", unique_constraint_position=1,
                foreign_schema_name="public", foreign_table_name="users",
                foreign_column_name="id",
            ),
        ],
        indexes=[
            IndexRow(schema_name="public", table_name="users", name="users_pkey", columns=["id"]),
            IndexRow(schema_name="public", table_name="users", name="users_email_key", columns=["email"]),
            IndexRow(schema_name="public", table_name="orders", name="orders_pkey", columns=["id"]),
            IndexRow(
                schema_name="public", table_name="orders",
                name="orders_user_id_idx", columns=["user_id"],
            ),
            IndexRow(
                schema_name="public", table_name="order_items",
                name="order_items_pkey", columns=["order_id", "line_no"],
            ),
            IndexRow(schema_name="audit", table_name="events", name="events_pkey", columns=["id"]),
        ],
        enums=[
            EnumRow(
                schema_name="public",
                name="mood",
                values=[
                    EnumValueRow(label="sad", value=1),
                    EnumValueRow(label="ok", value=2),
                    EnumValueRow(label="happy", value=3),
                ],
            ),
        ],
    )


@pytest.fixture()
def database(introspection_result: IntrospectionResult) -> Database:
    """The shop database as a graph, with names left untouched."""
    return ModelBuilder(SCHEMAS).build(introspection_result)


@pytest.fixture()
def config_data() -> ConfigData:
    return ConfigData(conn_str="sqlite://", schemas=list(SCHEMAS))


@pytest.fixture()
def env():
    return create_environment()


# ---------------------------------------------------------------------------
# SQLite catalog
# ---------------------------------------------------------------------------

# Raw rows shaped like the output of the PostgreSQL catalog queries.
CATALOG: Dict[str, List[Dict[str, Any]]] = {
    "cat_tables": [
        {"schema_name": "public", "table_name": "users"},
        {"schema_name": "public", "table_name": "orders"},
        {"schema_name": "public", "table_name": "order_items"},
        {"schema_name": "audit", "table_name": "events"},
    ],
    "cat_columns": [
        {"schema_name": "public", "table_name": "users", "column_name": "id",
         "ordinal_position": 1, "column_default": "nextval('users_id_seq'::regclass)",
         "is_nullable": "NO", "data_type": "integer", "udt_name": "int4",
         "character_maximum_length": None},
        {"schema_name": "public", "table_name": "users", "column_name": "email",
         "ordinal_position": 2, "column_default": None, "is_nullable": "NO",
         "data_type": "character varying", "udt_name": "varchar",
         "character_maximum_length": 255},
        {"schema_name": "public", "table_name": "users", "column_name": "mood",
         "ordinal_position": 3, "column_default": None, "is_nullable": "YES",
         "data_type": "USER-DEFINED", "udt_name": "mood",
         "character_maximum_length": None},
        {"schema_name": "public", "table_name": "orders", "column_name": "id",
         "ordinal_position": 1, "column_default": "nextval('orders_id_seq'::regclass)",
         "is_nullable": "NO", "data_type": "integer", "udt_name": "int4",
         "character_maximum_length": None},
        {"schema_name": "public", "table_name": "orders", "column_name": "user_id",
         "ordinal_position": 2, "column_default": None, "is_nullable": "NO",
         "data_type": "integer", "udt_name": "int4", "character_maximum_length": None},
        {"schema_name": "public", "table_name": "orders", "column_name": "tags",
         "ordinal_position": 3, "column_default": None, "is_nullable": "YES",
         "data_type": "ARRAY", "udt_name": "_text", "character_maximum_length": None},
        {"schema_name": "public", "table_name": "order_items", "column_name": "order_id",
         "ordinal_position": 1, "column_default": None, "is_nullable": "NO",
         "data_type": "integer", "udt_name": "int4", "character_maximum_length": None},
        {"schema_name": "public", "table_name": "order_items", "column_name": "line_no",
         "ordinal_position": 2, "column_default": None, "is_nullable": "NO",
         "data_type": "integer", "udt_name": "int4", "character_maximum_length": None},
        {"schema_name": "audit", "table_name": "events", "column_name": "id",
         "ordinal_position": 1, "column_default": None, "is_nullable": "NO",
         "data_type": "bigint", "udt_name": "int8", "character_maximum_length": None},
        {"schema_name": "audit", "table_name": "events", "column_name": "user_id",
         "ordinal_position": 2, "column_default": None, "is_nullable": "YES",
         "data_type": "integer", "udt_name": "int4", "character_maximum_length": None},
    ],
    "cat_primary_keys": [
        {"schema_name": "public", "table_name": "users", "column_name": "id", "name": "users_pkey"},
        {"schema_name": "public", "table_name": "orders", "column_name": "id", "name": "orders_pkey"},
        {"schema_name": "public", "table_name": "order_items", "column_name": "order_id",
         "name": "order_items_pkey"},
        {"schema_name": "public", "table_name": "order_items", "column_name": "line_no",
         "name": "order_items_pkey"},
        {"schema_name": "audit", "table_name": "events", "column_name": "id", "name": "events_pkey"},
    ],
    "cat_foreign_keys": [
        {"schema_name": "public", "table_name": "orders", "column_name": "user_id",
         "name": "orders_user_id_fkey", "unique_constraint_position": 1,
         "foreign_schema_name": "public", "foreign_table_name": "users",
         "foreign_column_name": "id"},
        {"schema_name": "public", "table_name": "order_items", "column_name": "order_id",
         "name": "order_items_order_id_fkey", "unique_constraint_position": None,
         "foreign_schema_name": "public", "foreign_table_name": "orders",
         "foreign_column_name": "id"},
        {"schema_name": "audit", "table_name": "events", "column_name": "user_id",
         "name": "events_user_id_fkey", "unique_constraint_position": 1,
         "foreign_schema_name": "public", "foreign_table_name": "users",
         "foreign_column_name": "id"},
    ],
    "cat_indexes": [
        {"schema_name": "public", "table_name": "users", "name": "users_pkey", "column_names": "id"},
        {"schema_name": "public", "table_name": "orders", "name": "orders_pkey", "column_names": "id"},
        {"schema_name": "public", "table_name": "order_items", "name": "order_items_pkey",
         "column_names": "order_id,line_no"},
        {"schema_name": "audit", "table_name": "audit.events", "name": "events_pkey",
         "column_names": "id"},
    ],
    "cat_enums": [
        {"schema_name": "public", "name": "mood", "label": "sad", "value": 1},
        {"schema_name": "public", "name": "mood", "label": "ok", "value": 2},
        {"schema_name": "public", "name": "mood", "label": "happy", "value": 3},
    ],
}


def _catalog_sql(table: str, columns: List[str]) -> str:
    return (
        f"SELECT {', '.join(columns)} FROM {table} "
        "WHERE schema_name IN :schemas ORDER BY rowid"
    )


class CatalogDriver(PostgresDriver):
    """``PostgresDriver`` reading the pre-baked catalog of a SQLite file."""

    name = "catalog"

    tables_sql = _catalog_sql("cat_tables", list(CATALOG["cat_tables"][0]))
    columns_sql = _catalog_sql("cat_columns", list(CATALOG["cat_columns"][0]))
    primary_keys_sql = _catalog_sql("cat_primary_keys", list(CATALOG["cat_primary_keys"][0]))
    foreign_keys_sql = _catalog_sql("cat_foreign_keys", list(CATALOG["cat_foreign_keys"][0]))
    indexes_sql = _catalog_sql("cat_indexes", list(CATALOG["cat_indexes"][0]))
    enums_sql = _catalog_sql("cat_enums", list(CATALOG["cat_enums"][0]))


def write_catalog(path: pathlib.Path) -> str:
    """Create the SQLite catalog at *path* and return its SQLAlchemy URL."""
    url: str = f"sqlite:///{path}"
    engine = create_engine(url, poolclass=NullPool)
    try:
        with engine.begin() as conn:
            for table, rows in CATALOG.items():
                columns: List[str] = list(rows[0])
                conn.execute(text(f"CREATE TABLE {table} ({', '.join(columns)})"))
                conn.execute(
                    text(
                        f"INSERT INTO {table} ({', '.join(columns)}) "
                        f"VALUES ({', '.join(':' + c for c in columns)})"
                    ),
                    rows,
                )
    finally:
        engine.dispose()
    return url


@pytest.fixture()
def catalog_url(tmp_path: pathlib.Path) -> str:
    return write_catalog(tmp_path / "catalog.db")


@pytest.fixture()
def catalog_driver() -> CatalogDriver:
    return CatalogDriver()


@pytest.fixture()
def registered_catalog_driver(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make ``db_type: catalog`` resolvable through the driver registry."""
    monkeypatch.setitem(DRIVERS, CatalogDriver.name, CatalogDriver)


# ---------------------------------------------------------------------------
# Project on disk
# ---------------------------------------------------------------------------

TABLE_TEMPLATE: str = (
    "{{ table.name }}\n"
    "{% for c in table.columns %}{{ c.name }}:{{ c.type }}"
    "{% if c.is_primary_key %} pk{% endif %}\n{% endfor %}"
)
ENUM_TEMPLATE: str = "{{ enum.name }}={{ enum.values | map(attribute='db_name') | join(',') }}\n"


@pytest.fixture()
def make_project(tmp_path: pathlib.Path, catalog_url: str) -> Callable[..., pathlib.Path]:
    """
    Write templates and a ``schemagen.yaml`` pointing at the SQLite catalog.

    Keyword overrides are merged into the config mapping; returns the path
    of the config file.
    """

    def _make(
        overrides: Optional[Dict[str, Any]] = None,
        table_template: str = TABLE_TEMPLATE,
    ) -> pathlib.Path:
        project: pathlib.Path = tmp_path / "project"
        (project / "templates").mkdir(parents=True, exist_ok=True)
        (project / "templates" / "table.j2").write_text(table_template, encoding="utf-8")
        (project / "templates" / "enum.j2").write_text(ENUM_TEMPLATE, encoding="utf-8")

        config: Dict[str, Any] = {
            "conn_str": catalog_url,
            "db_type": "catalog",
            "schemas": list(SCHEMAS),
            "table_paths": {
                "{{ table.schema.db_name }}/{{ table.db_name }}.txt": "templates/table.j2",
            },
            "enum_paths": {"enums/{{ enum.db_name }}.txt": "templates/enum.j2"},
            "output_dir": "out",
        }
        config.update(overrides or {})
        config_path: pathlib.Path = project / "schemagen.yaml"
        config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
        return config_path

    return _make
