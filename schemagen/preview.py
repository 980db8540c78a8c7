# File: schemagen/preview.py
"""
schemagen - Preview Rendering
=============================
Shows what templates would see without writing anything.  ``yaml`` and
``tabular`` dump the translated graph; ``types`` lists each database type
with the type it maps to.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import yaml

from schemagen.models import Column, Database, Enum, Table

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.preview")

PREVIEW_FORMATS: Sequence[str] = ("yaml", "types", "tabular")


# ---------------------------------------------------------------------------
# Plain-dict projection
# ---------------------------------------------------------------------------


def _column_to_dict(column: Column) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "name": column.name,
        "db_name": column.db_name,
        "type": column.type,
        "db_type": column.db_type,
        "nullable": column.nullable,
        "has_default": column.has_default,
        "is_array": column.is_array,
        "length": column.length,
        "user_defined": column.user_defined,
        "is_primary_key": column.is_primary_key,
        "is_foreign_key": column.is_foreign_key,
    }
    if column.foreign_column is not None and column.foreign_column.foreign_column is not None:
        target: Column = column.foreign_column.foreign_column
        out["references"] = (
            f"{target.table.schema.db_name}.{target.table.db_name}.{target.db_name}"
        )
    if column.enum is not None:
        out["enum"] = column.enum.db_name
    return out


def _table_to_dict(table: Table) -> Dict[str, Any]:
    return {
        "name": table.name,
        "db_name": table.db_name,
        "columns": [_column_to_dict(c) for c in table.columns],
        "primary_keys": list(table.primary_keys.db_names()),
        "foreign_keys": {
            fk: [fc.column_name for fc in cols]
            for fk, cols in table.foreign_columns_by_foreign_key.items()
        },
        "foreign_key_references": list(table.foreign_key_references),
        "indexes": [
            {"name": idx.name, "db_name": idx.db_name, "columns": list(idx.columns.db_names())}
            for idx in table.indexes
        ],
    }


def _enum_to_dict(enum: Enum) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "name": enum.name,
        "db_name": enum.db_name,
        "values": [
            {"name": v.name, "db_name": v.db_name, "value": v.value} for v in enum.values
        ],
    }
    if enum.table is not None:
        out["table"] = enum.table.db_name
    return out


def database_to_dict(db: Database) -> Dict[str, Any]:
    """Project the graph onto plain, acyclic dicts and lists."""
    return {
        "schemas": [
            {
                "name": schema.name,
                "db_name": schema.db_name,
                "tables": [_table_to_dict(t) for t in schema.tables],
                "enums": [_enum_to_dict(e) for e in schema.enums],
            }
            for schema in db.schemas
        ]
    }


# ---------------------------------------------------------------------------
# Text tables
# ---------------------------------------------------------------------------


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Render rows as a ``|``-separated table with a header rule."""
    widths: List[int] = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def _line(cells: Sequence[str]) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"

    rule: str = "|" + "|".join("-" * (w + 2) for w in widths) + "|"
    return "\n".join([_line(headers), rule, *(_line(r) for r in rows)])


def _yes(flag: bool) -> str:
    return "yes" if flag else ""


def render_tabular(db: Database) -> str:
    blocks: List[str] = []
    for schema in db.schemas:
        blocks.append(f"Schema: {schema.name} ({schema.db_name})")
        for table in schema.tables:
            rows: List[List[str]] = [
                [
                    c.name,
                    c.db_name,
                    c.type,
                    c.db_type,
                    _yes(c.nullable),
                    _yes(c.is_primary_key),
                    c.foreign_column.name if c.foreign_column else "",
                ]
                for c in table.columns
            ]
            blocks.append(f"Table: {table.name} ({table.db_name})")
            blocks.append(
                format_table(
                    ["Name", "DBName", "Type", "DBType", "Nullable", "PK", "FK"], rows
                )
            )
        for enum in schema.enums:
            blocks.append(f"Enum: {enum.name} ({enum.db_name})")
            blocks.append(
                format_table(
                    ["Name", "DBName", "Value"],
                    [[v.name, v.db_name, str(v.value)] for v in enum.values],
                )
            )
    return "\n\n".join(blocks) + "\n"


def render_types(db: Database) -> str:
    """List each distinct ``(db_type, type)`` pair once, in graph order."""
    seen: Dict[tuple, None] = {}
    for schema in db.schemas:
        for table in schema.tables:
            for column in table.columns:
                seen.setdefault((column.db_type, column.type), None)
    return format_table(["DBType", "Type"], [list(pair) for pair in seen]) + "\n"


def render_preview(db: Database, fmt: str = "yaml") -> str:
    """Render *db* in one of ``PREVIEW_FORMATS``."""
    if fmt == "yaml":
        return yaml.safe_dump(database_to_dict(db), sort_keys=False, default_flow_style=False)
    if fmt == "types":
        return render_types(db)
    if fmt == "tabular":
        return render_tabular(db)
    raise ValueError(f"unknown preview format {fmt!r}; expected one of {list(PREVIEW_FORMATS)}")


__all__: List[str] = [
    "PREVIEW_FORMATS",
    "database_to_dict",
    "format_table",
    "render_tabular",
    "render_types",
    "render_preview",
]

logger.debug("schemagen.preview loaded.")
