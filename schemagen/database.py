# File: schemagen/database.py
"""
schemagen - Raw Introspection Rows
==================================
Pydantic V2 models for the flat, denormalized rows a driver returns.

Each driver issues one query per concern (tables, columns, primary keys,
foreign keys, indexes, enums) and converts every result row into one of
the models below.  Nothing here is cross-referenced yet; that is the job of
``schemagen.builder.ModelBuilder``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.database")

# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_ROW_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Row models
# ---------------------------------------------------------------------------


class TableRow(BaseModel):
    """One table (or view) found in a target schema."""

    model_config = _ROW_CONFIG

    schema_name: str = Field(..., min_length=1)
    table_name: str = Field(..., min_length=1)


class ColumnRow(BaseModel):
    """
    One column, already normalized by the driver.

    ``type`` is the backend type name with array/user-defined wrapping
    removed; ``orig`` keeps the untouched catalog row for templates that
    need backend specifics.
    """

    model_config = _ROW_CONFIG

    schema_name: str = Field(..., min_length=1)
    table_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, description="Column name in the DB.")
    type: str = Field(..., description="Normalized database type name.")
    is_array: bool = False
    length: int = Field(default=0, ge=0, description="Max length, 0 if none.")
    user_defined: bool = False
    nullable: bool = False
    has_default: bool = False
    orig: Dict[str, Any] = Field(default_factory=dict)


class PrimaryKeyRow(BaseModel):
    """One (schema, table, column) participating in a primary key."""

    model_config = _ROW_CONFIG

    schema_name: str
    table_name: str
    column_name: str
    name: str = Field(..., description="Constraint name.")


class ForeignKeyRow(BaseModel):
    """
    One column of a foreign-key constraint.

    Composite keys produce one row per column; ``unique_constraint_position``
    is the ordinal of the referenced column in the targeted unique
    constraint.  ``foreign_schema_name`` defaults to ``schema_name``.
    """

    model_config = _ROW_CONFIG

    schema_name: str
    table_name: str
    column_name: str
    name: str = Field(..., description="Constraint name.")
    unique_constraint_position: int = 0
    foreign_schema_name: Optional[str] = None
    foreign_table_name: str
    foreign_column_name: str

    @property
    def referenced_schema(self) -> str:
        return self.foreign_schema_name or self.schema_name


class IndexRow(BaseModel):
    """One index with its column names in index order."""

    model_config = _ROW_CONFIG

    schema_name: str
    table_name: str
    name: str
    columns: List[str] = Field(default_factory=list)


class EnumValueRow(BaseModel):
    """A single label of an enum type."""

    model_config = _ROW_CONFIG

    label: str
    value: int


class EnumRow(BaseModel):
    """
    An enumerated type.

    ``table_name`` is set only by dialects whose enums are declared inline
    on a column (MySQL); PostgreSQL enums are schema-scoped.
    """

    model_config = _ROW_CONFIG

    schema_name: str
    name: str
    table_name: Optional[str] = None
    values: List[EnumValueRow] = Field(default_factory=list)


class IntrospectionResult(BaseModel):
    """Every row set a driver produced for one run, unordered across sets."""

    model_config = ConfigDict(extra="forbid")

    tables: List[TableRow] = Field(default_factory=list)
    columns: List[ColumnRow] = Field(default_factory=list)
    primary_keys: List[PrimaryKeyRow] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyRow] = Field(default_factory=list)
    indexes: List[IndexRow] = Field(default_factory=list)
    enums: List[EnumRow] = Field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"<IntrospectionResult {len(self.tables)} tables, "
            f"{len(self.columns)} columns, {len(self.foreign_keys)} FK rows, "
            f"{len(self.indexes)} indexes, {len(self.enums)} enums>"
        )


__all__: List[str] = [
    "TableRow",
    "ColumnRow",
    "PrimaryKeyRow",
    "ForeignKeyRow",
    "IndexRow",
    "EnumValueRow",
    "EnumRow",
    "IntrospectionResult",
]

logger.debug("schemagen.database loaded.")
