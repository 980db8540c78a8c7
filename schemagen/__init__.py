# File: schemagen/__init__.py
"""
schemagen - Database-First Code Generator
=========================================

Introspects a live relational database (PostgreSQL, MySQL), normalizes the
catalog into one cross-referenced graph, and renders user Jinja2 templates
against it, one file per schema, table or enum.

Architecture overview::

    ┌──────────────┐     ┌─────────────────┐     ┌──────────────┐
    │  CLI / Entry │────▶│ SchemaGenerator │────▶│  Generator   │
    │   (cli.py)   │     │ (generator.py)  │     │ (atomic I/O) │
    └──────────────┘     └────────┬────────┘     └──────┬───────┘
                                  │                     │
                   ┌──────────────┼──────────┐          ▼
                   ▼              ▼          ▼    ┌───────────┐
             ┌──────────┐  ┌───────────┐ ┌──────┐ │ exporters │
             │  driver  │  │  builder  │ │ data │ └───────────┘
             │ postgres │  │  models   │ └──────┘
             │  mysql   │  └───────────┘
             └──────────┘

Usage::

    # As a library
    from schemagen import SchemaGenerator, load_config
    report = SchemaGenerator(load_config("schemagen.yaml")).run()
    print(report.summary())

    # From the command line
    schemagen gen -c schemagen.yaml -v

Public API:
    - SchemaGenerator  - Master orchestrator
    - Generator        - Atomic generation engine
    - ModelBuilder     - Row sets to relational graph
    - Config           - Validated configuration
    - Driver           - Database backend base class
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from schemagen.errors import (
    ConfigError,
    DriverConnectionError,
    QueryError,
    SchemaGenError,
    TemplateRenderError,
)
from schemagen.database import IntrospectionResult
from schemagen.driver import DRIVERS, Driver, get_driver, make_table_filter, register_driver

# Importing the backends registers them in DRIVERS.
from schemagen.postgres import PostgresDriver
from schemagen.mysql import MySQLDriver

from schemagen.models import (
    Column,
    Columns,
    Database,
    Enum,
    Enums,
    EnumValue,
    ForeignColumn,
    ForeignTable,
    Index,
    Schema,
    Strings,
    Table,
    Tables,
)
from schemagen.builder import ModelBuilder
from schemagen.config import Config, ConfigData, load_config
from schemagen.exporters import FileExporter, FileRecord
from schemagen.generator import (
    GenerationReport,
    Generator,
    OutputTarget,
    SchemaGenerator,
    Targets,
)

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Errors
    "SchemaGenError",
    "ConfigError",
    "DriverConnectionError",
    "QueryError",
    "TemplateRenderError",
    # Drivers
    "IntrospectionResult",
    "Driver",
    "DRIVERS",
    "get_driver",
    "register_driver",
    "make_table_filter",
    "PostgresDriver",
    "MySQLDriver",
    # Graph
    "Database",
    "Schema",
    "Table",
    "Column",
    "Index",
    "Enum",
    "EnumValue",
    "ForeignColumn",
    "ForeignTable",
    "Columns",
    "Tables",
    "Enums",
    "Strings",
    "ModelBuilder",
    # Config
    "Config",
    "ConfigData",
    "load_config",
    # Generation
    "FileExporter",
    "FileRecord",
    "OutputTarget",
    "Targets",
    "Generator",
    "GenerationReport",
    "SchemaGenerator",
]
