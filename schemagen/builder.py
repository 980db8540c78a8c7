# File: schemagen/builder.py
"""
schemagen - Schema Model Builder
================================
Turns the flat row sets of an ``IntrospectionResult`` into the
cross-referenced ``Database`` graph of ``schemagen.models``.

Passes run strictly in this order, each depending on the previous one::

    1. schemas & tables     4. foreign keys (both directions)
    2. columns              5. enums (and enum-typed columns)
    3. primary keys         6. indexes

Rows that cannot be placed (unknown schema, unknown table, duplicate
name ...) indicate a catalog inconsistency.  They are logged at INFO as
``should be impossible: ...``, collected on ``ModelBuilder.inconsistencies``
and skipped; the build never aborts because of them.  Rows belonging to a
table rejected by the table filter are skipped quietly at DEBUG.

Ordering is whatever the driver returned; nothing here sorts.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from schemagen.database import (
    ColumnRow,
    EnumRow,
    ForeignKeyRow,
    IndexRow,
    IntrospectionResult,
    PrimaryKeyRow,
    TableRow,
)
from schemagen.driver import TableFilter, keep_all_tables
from schemagen.models import (
    Column,
    Columns,
    Database,
    Enum,
    EnumValue,
    ForeignColumn,
    ForeignTable,
    Index,
    Schema,
    Table,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.builder")

NameConverter = Callable[[str], str]


def identity(name: str) -> str:
    return name


class ModelBuilder:
    """
    Builds one ``Database`` from one ``IntrospectionResult``.

    Args:
        schema_names: Schemas to create, in output order.
        filter_tables: ``(schema, table) -> bool``; rejected tables and
            everything attached to them are left out of the graph.
        convert_name: Applied to every schema, table, column, index, enum
            and enum label name; the untouched name is kept as ``db_name``.
        type_map: Database type → output type for non-nullable columns.
        nullable_type_map: Same, for nullable columns.
    """

    def __init__(
        self,
        schema_names: Sequence[str],
        *,
        filter_tables: TableFilter = keep_all_tables,
        convert_name: Optional[NameConverter] = None,
        type_map: Optional[Mapping[str, str]] = None,
        nullable_type_map: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.schema_names: List[str] = list(schema_names)
        self.filter_tables: TableFilter = filter_tables
        self.convert_name: NameConverter = convert_name or identity
        self.type_map: Dict[str, str] = dict(type_map or {})
        self.nullable_type_map: Dict[str, str] = dict(nullable_type_map or {})
        self.inconsistencies: List[str] = []
        self._db: Database = Database()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, result: IntrospectionResult) -> Database:
        self._db = Database()
        self.inconsistencies = []

        self._seed_tables(result.tables)
        self._attach_columns(result.columns)
        self._mark_primary_keys(result.primary_keys)
        self._link_foreign_keys(result.foreign_keys)
        self._attach_enums(result.enums)
        self._attach_indexes(result.indexes)

        logger.info(
            "Built %r with %d inconsistencies", self._db, len(self.inconsistencies)
        )
        return self._db

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _inconsistent(self, msg: str, *args: object) -> None:
        text: str = msg % args
        logger.info("should be impossible: %s", text)
        self.inconsistencies.append(text)

    def _filtered(self, what: str, schema: str, table: str) -> bool:
        if self.filter_tables(schema, table):
            return False
        logger.debug("skipping %s for filtered-out table %s.%s", what, schema, table)
        return True

    def _lookup_table(self, what: str, schema_name: str, table_name: str) -> Optional[Table]:
        schema: Optional[Schema] = self._db.schemas_by_name.get(schema_name)
        if schema is None:
            self._inconsistent("%s references unknown schema %r", what, schema_name)
            return None
        table: Optional[Table] = schema.tables_by_name.get(table_name)
        if table is None:
            self._inconsistent(
                "%s references unknown table %r in schema %r", what, table_name, schema_name
            )
        return table

    def _lookup_column(self, what: str, table: Table, column_name: str) -> Optional[Column]:
        column: Optional[Column] = table.columns_by_name.get(column_name)
        if column is None:
            self._inconsistent(
                "%s references unknown column %r in table %s.%s",
                what,
                column_name,
                table.schema.db_name,
                table.db_name,
            )
        return column

    def _mapped_type(self, db_type: str, nullable: bool) -> Optional[str]:
        mapping: Dict[str, str] = self.nullable_type_map if nullable else self.type_map
        return mapping.get(db_type)

    # ------------------------------------------------------------------
    # Pass 1: schemas & tables
    # ------------------------------------------------------------------

    def _seed_tables(self, rows: List[TableRow]) -> None:
        for name in self.schema_names:
            if name in self._db.schemas_by_name:
                continue
            self._db.add_schema(Schema(name=self.convert_name(name), db_name=name))

        for row in rows:
            if self._filtered("table", row.schema_name, row.table_name):
                continue
            schema: Optional[Schema] = self._db.schemas_by_name.get(row.schema_name)
            if schema is None:
                self._inconsistent(
                    "table %r references unknown schema %r", row.table_name, row.schema_name
                )
                continue
            if row.table_name in schema.tables_by_name:
                self._inconsistent(
                    "duplicate table %r in schema %r", row.table_name, row.schema_name
                )
                continue
            schema.add_table(
                Table(
                    name=self.convert_name(row.table_name),
                    db_name=row.table_name,
                    schema=schema,
                )
            )

    # ------------------------------------------------------------------
    # Pass 2: columns
    # ------------------------------------------------------------------

    def _attach_columns(self, rows: List[ColumnRow]) -> None:
        for row in rows:
            if self._filtered(f"column {row.name!r}", row.schema_name, row.table_name):
                continue
            table: Optional[Table] = self._lookup_table(
                f"column {row.name!r}", row.schema_name, row.table_name
            )
            if table is None:
                continue
            if row.name in table.columns_by_name:
                self._inconsistent(
                    "duplicate column %r in table %s.%s",
                    row.name,
                    row.schema_name,
                    row.table_name,
                )
                continue

            mapped: Optional[str] = self._mapped_type(row.type, row.nullable)
            table.add_column(
                Column(
                    name=self.convert_name(row.name),
                    db_name=row.name,
                    table=table,
                    type=mapped if mapped is not None else row.type,
                    db_type=row.type,
                    is_array=row.is_array,
                    length=row.length,
                    user_defined=row.user_defined,
                    nullable=row.nullable,
                    has_default=row.has_default,
                    orig=dict(row.orig),
                )
            )

    # ------------------------------------------------------------------
    # Pass 3: primary keys
    # ------------------------------------------------------------------

    def _mark_primary_keys(self, rows: List[PrimaryKeyRow]) -> None:
        for row in rows:
            what: str = f"primary key {row.name!r}"
            if self._filtered(what, row.schema_name, row.table_name):
                continue
            table: Optional[Table] = self._lookup_table(what, row.schema_name, row.table_name)
            if table is None:
                continue
            column: Optional[Column] = self._lookup_column(what, table, row.column_name)
            if column is None:
                continue
            if not column.is_primary_key:
                table.primary_keys.append(column)

    # ------------------------------------------------------------------
    # Pass 4: foreign keys
    # ------------------------------------------------------------------

    def _link_foreign_keys(self, rows: List[ForeignKeyRow]) -> None:
        for row in rows:
            what: str = f"foreign key {row.name!r}"
            if self._filtered(what, row.schema_name, row.table_name):
                continue
            table: Optional[Table] = self._lookup_table(what, row.schema_name, row.table_name)
            if table is None:
                continue
            column: Optional[Column] = self._lookup_column(what, table, row.column_name)
            if column is None:
                continue

            ref_schema: str = row.referenced_schema
            if self._filtered(f"{what} target", ref_schema, row.foreign_table_name):
                continue
            ref_table: Optional[Table] = self._lookup_table(
                f"{what} target", ref_schema, row.foreign_table_name
            )
            if ref_table is None:
                continue
            ref_column: Optional[Column] = self._lookup_column(
                f"{what} target", ref_table, row.foreign_column_name
            )
            if ref_column is None:
                continue

            self._link(row, table, column, ref_table, ref_column)

    @staticmethod
    def _link(
        row: ForeignKeyRow,
        table: Table,
        column: Column,
        ref_table: Table,
        ref_column: Column,
    ) -> None:
        fk_name: str = row.name
        fc: ForeignColumn = ForeignColumn(
            name=fk_name,
            column_name=column.db_name,
            foreign_column_name=ref_column.db_name,
            unique_constraint_position=row.unique_constraint_position,
            column=column,
            foreign_column=ref_column,
        )

        # referencing side
        if column.foreign_column is None:
            column.foreign_column = fc
        table.foreign_columns_by_foreign_key.setdefault(fk_name, []).append(fc)
        if fk_name not in table.foreign_keys:
            table.foreign_keys.append(fk_name)
        ft: Optional[ForeignTable] = table.foreign_tables_by_foreign_key.get(fk_name)
        if ft is None:
            ft = ForeignTable(
                name=fk_name,
                table_name=table.db_name,
                foreign_table_name=ref_table.db_name,
                table=table,
                foreign_table=ref_table,
            )
            table.foreign_tables_by_foreign_key[fk_name] = ft

        # referenced side
        if fk_name not in ref_table.foreign_key_references:
            ref_table.foreign_key_references.append(fk_name)
        ref_table.foreign_tables_by_foreign_key_reference.setdefault(fk_name, ft)
        if fk_name not in ref_column.foreign_key_references:
            ref_column.foreign_key_references.append(fk_name)
        ref_column.foreign_columns_by_foreign_key_reference[fk_name] = fc

    # ------------------------------------------------------------------
    # Pass 5: enums
    # ------------------------------------------------------------------

    def _attach_enums(self, rows: List[EnumRow]) -> None:
        user_defined: Dict[Tuple[str, str], List[Column]] = {}
        for table_ in self._db.iter_tables():
            for col in table_.columns:
                if col.user_defined:
                    key: Tuple[str, str] = (table_.schema.db_name, col.db_type)
                    user_defined.setdefault(key, []).append(col)

        for row in rows:
            what: str = f"enum {row.name!r}"
            schema: Optional[Schema] = self._db.schemas_by_name.get(row.schema_name)
            if schema is None:
                self._inconsistent("%s references unknown schema %r", what, row.schema_name)
                continue

            table: Optional[Table] = None
            if row.table_name is not None:
                if self._filtered(what, row.schema_name, row.table_name):
                    continue
                table = self._lookup_table(what, row.schema_name, row.table_name)
                if table is None:
                    continue

            if row.name in schema.enums_by_name:
                self._inconsistent("duplicate enum %r in schema %r", row.name, row.schema_name)
                continue

            enum: Enum = Enum(
                name=self.convert_name(row.name),
                db_name=row.name,
                schema=schema,
                table=table,
                values=[
                    EnumValue(
                        name=self.convert_name(value.label),
                        db_name=value.label,
                        value=value.value,
                    )
                    for value in row.values
                ],
            )
            schema.add_enum(enum)

            for col in user_defined.get((schema.db_name, enum.db_name), []):
                if table is not None and col.table is not table:
                    continue
                col.enum = enum
                if self._mapped_type(col.db_type, col.nullable) is None:
                    col.type = enum.name

    # ------------------------------------------------------------------
    # Pass 6: indexes
    # ------------------------------------------------------------------

    def _attach_indexes(self, rows: List[IndexRow]) -> None:
        for row in rows:
            what: str = f"index {row.name!r}"
            if self._filtered(what, row.schema_name, row.table_name):
                continue
            table: Optional[Table] = self._lookup_table(what, row.schema_name, row.table_name)
            if table is None:
                continue
            if any(idx.db_name == row.name for idx in table.indexes):
                self._inconsistent(
                    "duplicate index %r on table %s.%s",
                    row.name,
                    row.schema_name,
                    row.table_name,
                )
                continue

            columns: Optional[Columns] = self._resolve_index_columns(what, table, row.columns)
            if columns is None:
                continue
            table.indexes.append(
                Index(
                    name=self.convert_name(row.name),
                    db_name=row.name,
                    table=table,
                    columns=columns,
                )
            )

    def _resolve_index_columns(
        self, what: str, table: Table, names: List[str]
    ) -> Optional[Columns]:
        columns: Columns = Columns()
        for name in names:
            column: Optional[Column] = self._lookup_column(what, table, name)
            if column is None:
                return None
            if any(c is column for c in columns):
                self._inconsistent(
                    "%s lists column %r more than once in table %s.%s",
                    what,
                    name,
                    table.schema.db_name,
                    table.db_name,
                )
                return None
            columns.append(column)
        return columns


__all__: List[str] = [
    "NameConverter",
    "identity",
    "ModelBuilder",
]

logger.debug("schemagen.builder loaded.")
