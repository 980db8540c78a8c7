# File: schemagen/errors.py
"""
schemagen - Error Types
=======================

Fatal conditions raised by the pipeline.  Non-fatal inconsistencies found
while building the relational model are *not* exceptions: they are logged
and collected on the ``ModelBuilder`` instead.

Hierarchy::

    SchemaGenError
    ├── ConfigError            invalid or unreadable configuration
    ├── DriverConnectionError  cannot reach / authenticate to the database
    ├── QueryError             an introspection query failed mid-flight
    └── TemplateRenderError    a filename or contents template failed
"""

from __future__ import annotations

from typing import List, Optional


class SchemaGenError(Exception):
    """Base class for every error raised by schemagen."""


class ConfigError(SchemaGenError):
    """Configuration could not be loaded or failed validation."""


class DriverConnectionError(SchemaGenError):
    """The database could not be reached."""


class QueryError(SchemaGenError):
    """An introspection query failed.  Carries the name of the query."""

    def __init__(self, query_name: str, message: str) -> None:
        super().__init__(f"error querying {query_name}: {message}")
        self.query_name: str = query_name


class TemplateRenderError(SchemaGenError):
    """
    A template failed to render for one generation unit.

    ``stage`` is ``"filename"``, ``"contents"`` or ``"name_conversion"``.
    """

    def __init__(
        self,
        unit: str,
        stage: str,
        message: str,
        source: Optional[str] = None,
    ) -> None:
        where: str = f" ({source})" if source else ""
        super().__init__(f"{unit}: {stage} template failed{where}: {message}")
        self.unit: str = unit
        self.stage: str = stage
        self.source: Optional[str] = source


__all__: List[str] = [
    "SchemaGenError",
    "ConfigError",
    "DriverConnectionError",
    "QueryError",
    "TemplateRenderError",
]
