# File: schemagen/config.py
"""
schemagen - Configuration
=========================
Loads ``schemagen.yaml`` (or ``.json``) into a validated ``Config``.

Example::

    conn_str: postgres://$DB_USER@localhost/app?sslmode=disable
    db_type: postgres
    schemas: [public]
    include_tables:
      public: [users, orders]
    name_conversion: "{{ name | pascal }}"
    type_map:
      integer: int
      text: str
    nullable_type_map:
      integer: Optional[int]
    table_paths:
      "models/{{ table.db_name }}.py": templates/table.j2
    output_dir: generated
    post_run: [black, $SCHEMAGEN_FILE]

Relative template paths, ``output_dir`` and ``static_dir`` are resolved
against the directory holding the configuration file.

``ConfigData`` is the subset exposed to templates as ``config``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)

from schemagen.driver import TableFilter, make_table_filter
from schemagen.errors import ConfigError
from schemagen.utils import expand_env

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.config")

DEFAULT_CONFIG_NAME: str = "schemagen.yaml"

TableList = Union[Dict[str, List[str]], List[str]]


# ---------------------------------------------------------------------------
# Template-visible subset
# ---------------------------------------------------------------------------


class ConfigData(BaseModel):
    """The part of the configuration templates can read."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    conn_str: str
    schemas: List[str]
    include_tables: Dict[str, List[str]] = Field(default_factory=dict)
    exclude_tables: Dict[str, List[str]] = Field(default_factory=dict)
    post_run: List[str] = Field(default_factory=list)
    type_map: Dict[str, str] = Field(default_factory=dict)
    nullable_type_map: Dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Full configuration
# ---------------------------------------------------------------------------


def _table_list_to_map(value: Any, schemas: Sequence[str]) -> Any:
    """
    Accept ``["public.users", "audit"]`` as shorthand for a schema mapping.

    A bare table name applies to every configured schema.
    """
    if not isinstance(value, list):
        return value
    result: Dict[str, List[str]] = {}
    for entry in value:
        if not isinstance(entry, str):
            raise ValueError(f"table entry must be a string, got {entry!r}")
        schema, dot, table = entry.rpartition(".")
        targets: Sequence[str] = [schema] if dot else schemas
        for target in targets:
            result.setdefault(target, []).append(table)
    return result


class Config(BaseModel):
    """Validated contents of a configuration file."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    # -- Database -----------------------------------------------------------
    conn_str: str = Field(..., min_length=1, description="SQLAlchemy URL; $VARS expanded.")
    db_type: str = Field(default="postgres", description="Registered driver name.")
    schemas: List[str] = Field(..., min_length=1, description="Schemas to introspect.")
    include_tables: Dict[str, List[str]] = Field(default_factory=dict)
    exclude_tables: Dict[str, List[str]] = Field(default_factory=dict)

    # -- Translation --------------------------------------------------------
    name_conversion: str = Field(default="", description="Jinja2 template over `name`.")
    type_map: Dict[str, str] = Field(default_factory=dict)
    nullable_type_map: Dict[str, str] = Field(default_factory=dict)

    # -- Output -------------------------------------------------------------
    schema_paths: Dict[str, str] = Field(default_factory=dict)
    table_paths: Dict[str, str] = Field(default_factory=dict)
    enum_paths: Dict[str, str] = Field(default_factory=dict)
    output_dir: str = Field(default=".")
    static_dir: Optional[str] = Field(default=None)
    post_run: List[str] = Field(default_factory=list)
    params: Dict[str, Any] = Field(default_factory=dict)

    _base_dir: Path = PrivateAttr(default_factory=Path.cwd)

    @model_validator(mode="before")
    @classmethod
    def _expand_table_lists(cls, data: Any) -> Any:
        if isinstance(data, dict):
            schemas: Sequence[str] = data.get("schemas") or []
            data = dict(data)
            for key in ("include_tables", "exclude_tables"):
                if key in data and data[key] is not None:
                    data[key] = _table_list_to_map(data[key], schemas)
        return data

    @field_validator("conn_str")
    @classmethod
    def _expand_conn_str(cls, value: str) -> str:
        return expand_env(value)

    @field_validator("db_type")
    @classmethod
    def _normalize_db_type(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def _check_table_filters(self) -> "Config":
        if any(self.include_tables.values()) and any(self.exclude_tables.values()):
            raise ValueError("include_tables and exclude_tables cannot both be set")
        return self

    @model_validator(mode="after")
    def _check_targets(self) -> "Config":
        if not (self.schema_paths or self.table_paths or self.enum_paths):
            logger.warning("No schema_paths, table_paths or enum_paths configured.")
        return self

    # -- Helpers ------------------------------------------------------------

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def with_base_dir(self, base_dir: Path) -> "Config":
        self._base_dir = base_dir
        return self

    def resolve_path(self, path: Union[str, Path]) -> Path:
        p: Path = Path(path).expanduser()
        return p if p.is_absolute() else self._base_dir / p

    @property
    def output_path(self) -> Path:
        return self.resolve_path(self.output_dir)

    @property
    def static_path(self) -> Optional[Path]:
        return self.resolve_path(self.static_dir) if self.static_dir else None

    def table_filter(self) -> TableFilter:
        return make_table_filter(self.include_tables, self.exclude_tables)

    def config_data(self) -> ConfigData:
        return ConfigData(
            conn_str=self.conn_str,
            schemas=list(self.schemas),
            include_tables={k: list(v) for k, v in self.include_tables.items()},
            exclude_tables={k: list(v) for k, v in self.exclude_tables.items()},
            post_run=list(self.post_run),
            type_map=dict(self.type_map),
            nullable_type_map=dict(self.nullable_type_map),
        )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object at top level, got {type(data).__name__}.")
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping at top level, got {type(data).__name__}.")
    return data


def load_raw_config(path: Path) -> Dict[str, Any]:
    """Parse a YAML or JSON file, dispatching on its extension."""
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s': trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ConfigError:
        return _load_yaml_file(path)


def parse_config(raw: Dict[str, Any], base_dir: Optional[Path] = None) -> Config:
    """Validate a raw mapping; pydantic errors become ``ConfigError``."""
    try:
        config: Config = Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    return config.with_base_dir(base_dir or Path.cwd())


def load_config(path: Union[str, Path]) -> Config:
    """Load, validate and anchor a configuration file."""
    cfg_path: Path = Path(path).expanduser().resolve()
    config: Config = parse_config(load_raw_config(cfg_path), cfg_path.parent)
    logger.info(
        "Loaded config %s: db_type=%s schemas=%s", cfg_path, config.db_type, config.schemas
    )
    return config


__all__: List[str] = [
    "DEFAULT_CONFIG_NAME",
    "ConfigData",
    "Config",
    "load_raw_config",
    "parse_config",
    "load_config",
]

logger.debug("schemagen.config loaded.")
