# File: schemagen/driver.py
"""
schemagen - Database Driver Contract
====================================
A driver connects to one live database, runs a fixed sequence of catalog
queries and hands back flat row sets (``schemagen.database``).  It never
cross-references anything.

Every backend subclasses ``Driver`` and registers itself in ``DRIVERS``.
The base class owns the connection lifecycle and the query loop::

    connect → tables → columns → primary_keys → foreign_keys
            → indexes → enums → dispose

For each query the subclass returns plain ``dict`` rows; rows that belong
to a table rejected by the table filter are dropped right after the fetch,
and only the survivors are converted into row models.

Connection failures raise ``DriverConnectionError`` and query failures
raise ``QueryError``.  Both are fatal; there are no retries.
"""

from __future__ import annotations

import abc
import logging
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
)

from pydantic import ValidationError
from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from schemagen.database import (
    ColumnRow,
    EnumRow,
    ForeignKeyRow,
    IndexRow,
    IntrospectionResult,
    PrimaryKeyRow,
    TableRow,
)
from schemagen.errors import ConfigError, DriverConnectionError, QueryError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.driver")

TableFilter = Callable[[str, str], bool]
RawRow = Dict[str, Any]

# Order in which the catalog is queried.
QUERY_ORDER: Sequence[str] = (
    "tables",
    "columns",
    "primary_keys",
    "foreign_keys",
    "indexes",
    "enums",
)


# ---------------------------------------------------------------------------
# Table filter
# ---------------------------------------------------------------------------


def keep_all_tables(schema: str, table: str) -> bool:
    return True


def make_table_filter(
    include: Optional[Mapping[str, Iterable[str]]] = None,
    exclude: Optional[Mapping[str, Iterable[str]]] = None,
) -> TableFilter:
    """
    Build the ``(schema, table) -> bool`` predicate used during introspection.

    - *include* non-empty: keep a table only if it is listed under its schema.
      A schema with no entry keeps nothing.
    - *exclude* non-empty: keep every table except the listed ones.
    - both empty: keep everything.

    Passing both non-empty is a configuration error.
    """
    inc: Dict[str, frozenset] = {s: frozenset(t) for s, t in (include or {}).items()}
    exc: Dict[str, frozenset] = {s: frozenset(t) for s, t in (exclude or {}).items()}

    if any(inc.values()) and any(exc.values()):
        raise ConfigError("include_tables and exclude_tables are mutually exclusive")

    if any(inc.values()):
        def _included(schema: str, table: str) -> bool:
            return table in inc.get(schema, frozenset())

        return _included

    if any(exc.values()):
        def _not_excluded(schema: str, table: str) -> bool:
            return table not in exc.get(schema, frozenset())

        return _not_excluded

    return keep_all_tables


# ---------------------------------------------------------------------------
# Driver base class
# ---------------------------------------------------------------------------


class Driver(abc.ABC):
    """
    Base class for database backends.

    Subclasses implement one ``query_<name>`` method per entry of
    ``QUERY_ORDER``, each returning ``dict`` rows carrying ``schema_name``
    and (except schema-scoped enums) ``table_name``.  They may override the
    matching ``convert_<name>`` to turn surviving rows into row models.
    """

    name: ClassVar[str] = ""

    # -- connection ---------------------------------------------------------

    def create_engine(self, conn_str: str) -> Engine:
        return create_engine(conn_str, poolclass=NullPool)

    def parse(
        self,
        conn_str: str,
        schema_names: Sequence[str],
        filter_tables: TableFilter = keep_all_tables,
    ) -> IntrospectionResult:
        """Introspect *schema_names* and return every row set."""
        schemas: List[str] = list(schema_names)
        logger.info("Connecting with %s driver", self.name or type(self).__name__)

        try:
            engine: Engine = self.create_engine(conn_str)
        except (SQLAlchemyError, ImportError) as exc:
            raise DriverConnectionError(f"cannot create engine: {exc}") from exc

        try:
            try:
                conn: Connection = engine.connect()
            except SQLAlchemyError as exc:
                raise DriverConnectionError(f"cannot connect to database: {exc}") from exc

            with conn:
                collected: Dict[str, List[Any]] = {}
                for query_name in QUERY_ORDER:
                    query: Callable[[Connection, List[str]], List[RawRow]] = getattr(
                        self, f"query_{query_name}"
                    )
                    convert: Callable[[List[RawRow]], List[Any]] = getattr(
                        self, f"convert_{query_name}"
                    )
                    rows: List[RawRow] = query(conn, schemas)
                    kept: List[RawRow] = self._drop_filtered(query_name, rows, filter_tables)
                    try:
                        collected[query_name] = convert(kept)
                    except ValidationError as exc:
                        raise QueryError(
                            query_name.replace("_", " "), f"malformed catalog row: {exc}"
                        ) from exc
                    logger.info(
                        "found %d %s (%d filtered out)",
                        len(collected[query_name]),
                        query_name.replace("_", " "),
                        len(rows) - len(kept),
                    )
        finally:
            engine.dispose()

        return IntrospectionResult(**collected)

    # -- helpers ------------------------------------------------------------

    def fetch(
        self,
        conn: Connection,
        query_name: str,
        sql: str,
        schema_names: Sequence[str],
        **params: Any,
    ) -> List[RawRow]:
        """
        Run *sql* with ``:schemas`` bound as an expanding ``IN`` list.

        Any SQLAlchemy failure becomes ``QueryError(query_name)``.
        """
        stmt = text(sql).bindparams(bindparam("schemas", expanding=True))
        try:
            result = conn.execute(stmt, {"schemas": list(schema_names), **params})
            return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as exc:
            raise QueryError(query_name, str(exc)) from exc

    @staticmethod
    def _drop_filtered(
        query_name: str, rows: List[RawRow], keep: TableFilter
    ) -> List[RawRow]:
        kept: List[RawRow] = []
        for row in rows:
            table: Optional[str] = row.get("table_name")
            if table is not None and not keep(row["schema_name"], table):
                logger.debug(
                    "skipping %s row for filtered-out table %s.%s",
                    query_name,
                    row["schema_name"],
                    table,
                )
                continue
            kept.append(row)
        return kept

    # -- queries ------------------------------------------------------------

    @abc.abstractmethod
    def query_tables(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        ...

    @abc.abstractmethod
    def query_columns(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        ...

    @abc.abstractmethod
    def query_primary_keys(
        self, conn: Connection, schema_names: List[str]
    ) -> List[RawRow]:
        ...

    @abc.abstractmethod
    def query_foreign_keys(
        self, conn: Connection, schema_names: List[str]
    ) -> List[RawRow]:
        ...

    @abc.abstractmethod
    def query_indexes(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        ...

    @abc.abstractmethod
    def query_enums(self, conn: Connection, schema_names: List[str]) -> List[RawRow]:
        ...

    # -- conversion ---------------------------------------------------------

    def convert_tables(self, rows: List[RawRow]) -> List[TableRow]:
        return [TableRow(**row) for row in rows]

    def convert_columns(self, rows: List[RawRow]) -> List[ColumnRow]:
        return [ColumnRow(**row) for row in rows]

    def convert_primary_keys(self, rows: List[RawRow]) -> List[PrimaryKeyRow]:
        return [PrimaryKeyRow(**row) for row in rows]

    def convert_foreign_keys(self, rows: List[RawRow]) -> List[ForeignKeyRow]:
        return [
            ForeignKeyRow(
                **{
                    **row,
                    "unique_constraint_position": row.get("unique_constraint_position") or 0,
                }
            )
            for row in rows
        ]

    def convert_indexes(self, rows: List[RawRow]) -> List[IndexRow]:
        return [IndexRow(**row) for row in rows]

    def convert_enums(self, rows: List[RawRow]) -> List[EnumRow]:
        return [EnumRow(**row) for row in rows]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

DRIVERS: Dict[str, Type[Driver]] = {}


def register_driver(cls: Type[Driver]) -> Type[Driver]:
    """Class decorator adding *cls* to ``DRIVERS`` under ``cls.name``."""
    if not cls.name:
        raise ValueError(f"driver {cls.__name__} has no name")
    DRIVERS[cls.name] = cls
    logger.debug("Registered driver %r", cls.name)
    return cls


def get_driver(name: str) -> Driver:
    """Instantiate the driver registered as *name*."""
    try:
        cls: Type[Driver] = DRIVERS[name]
    except KeyError:
        known: str = ", ".join(sorted(DRIVERS)) or "none"
        raise ConfigError(f"unknown db_type {name!r} (known: {known})") from None
    return cls()


__all__: List[str] = [
    "TableFilter",
    "QUERY_ORDER",
    "keep_all_tables",
    "make_table_filter",
    "Driver",
    "DRIVERS",
    "register_driver",
    "get_driver",
]

logger.debug("schemagen.driver loaded.")
