# File: schemagen/data.py
"""
schemagen - Template Data
=========================
The objects handed to templates.  Each generation unit gets the whole
database, the template-visible config, the user ``params`` and the one
entity it is rendering::

    schema templates   {{ schema }}  {{ db }}  {{ config }}  {{ params }}
    table templates    {{ table }}   ...
    enum templates     {{ enum }}    ...

These are projections only; nothing here mutates the graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List

from schemagen.config import ConfigData
from schemagen.models import Database, Enum, Schema, Table

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.data")


@dataclass(frozen=True, slots=True)
class _UnitData:
    db: Database
    config: ConfigData
    params: Dict[str, Any] = field(default_factory=dict)

    def _base_context(self) -> Dict[str, Any]:
        return {"db": self.db, "config": self.config, "params": self.params}


@dataclass(frozen=True, slots=True)
class SchemaData(_UnitData):
    schema: Schema = field(default=None)  # type: ignore[assignment]

    @property
    def label(self) -> str:
        return f"schema {self.schema.db_name}"

    def context(self) -> Dict[str, Any]:
        return {**self._base_context(), "schema": self.schema}


@dataclass(frozen=True, slots=True)
class TableData(_UnitData):
    table: Table = field(default=None)  # type: ignore[assignment]

    @property
    def label(self) -> str:
        return f"table {self.table.schema.db_name}.{self.table.db_name}"

    def context(self) -> Dict[str, Any]:
        return {**self._base_context(), "table": self.table}


@dataclass(frozen=True, slots=True)
class EnumData(_UnitData):
    enum: Enum = field(default=None)  # type: ignore[assignment]

    @property
    def label(self) -> str:
        return f"enum {self.enum.schema.db_name}.{self.enum.db_name}"

    def context(self) -> Dict[str, Any]:
        return {**self._base_context(), "enum": self.enum}


# ---------------------------------------------------------------------------
# Iteration in graph order
# ---------------------------------------------------------------------------


def iter_schema_data(
    db: Database, config: ConfigData, params: Dict[str, Any]
) -> Iterator[SchemaData]:
    for schema in db.schemas:
        yield SchemaData(db=db, config=config, params=params, schema=schema)


def iter_table_data(
    db: Database, config: ConfigData, params: Dict[str, Any]
) -> Iterator[TableData]:
    for table in db.iter_tables():
        yield TableData(db=db, config=config, params=params, table=table)


def iter_enum_data(
    db: Database, config: ConfigData, params: Dict[str, Any]
) -> Iterator[EnumData]:
    for enum in db.iter_enums():
        yield EnumData(db=db, config=config, params=params, enum=enum)


__all__: List[str] = [
    "SchemaData",
    "TableData",
    "EnumData",
    "iter_schema_data",
    "iter_table_data",
    "iter_enum_data",
]

logger.debug("schemagen.data loaded.")
