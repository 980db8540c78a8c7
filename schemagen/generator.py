# File: schemagen/generator.py
"""
schemagen - Generation Pipeline (Orchestrator)
==============================================

Connects every phase together:

    Config → Driver → ModelBuilder → Template Data → Generator → FileExporter

``Generator`` is the atomic generation engine: for each unit (one entity
× one configured output target) it

    1. renders the filename template,
    2. renders the contents template fully in memory,
    3. writes the result atomically,
    4. runs the post-run command against the written file.

Units run in a fixed order: schema targets for every schema, table targets
for every table, enum targets for every enum, then static assets.

Error handling strategy:
    - A unit whose filename or contents fail to render is recorded on the
      report and leaves its destination untouched; the remaining units
      still run and the report is marked failed.
    - Post-run failures are recorded but never undo a write and never fail
      the report.
    - Connection and query errors are fatal and propagate to the caller.

``SchemaGenerator`` wires a loaded ``Config`` through the whole pipeline
and backs the CLI.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from jinja2 import Environment, Template

from schemagen.builder import ModelBuilder
from schemagen.config import Config, ConfigData
from schemagen.data import (
    EnumData,
    SchemaData,
    TableData,
    iter_enum_data,
    iter_schema_data,
    iter_table_data,
)
from schemagen.database import IntrospectionResult
from schemagen.driver import Driver, get_driver
from schemagen.errors import TemplateRenderError
from schemagen.exporters import FileExporter, FileRecord, StaticCopyResult
from schemagen.models import Database
from schemagen.preview import render_preview
from schemagen.templates import (
    compile_name_converter,
    compile_template,
    create_environment,
    load_template_file,
)
from schemagen.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.generator")


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OutputTarget:
    """A compiled filename template paired with a compiled contents template."""

    filename: Template
    contents: Template
    source: str = ""


@dataclass(frozen=True, slots=True)
class Targets:
    """Output targets per entity kind."""

    schema: Sequence[OutputTarget] = ()
    table: Sequence[OutputTarget] = ()
    enum: Sequence[OutputTarget] = ()

    def __len__(self) -> int:
        return len(self.schema) + len(self.table) + len(self.enum)


def compile_targets(
    env: Environment, paths: Mapping[str, str], config: Config
) -> List[OutputTarget]:
    """Compile ``{filename template: contents template path}`` entries."""
    targets: List[OutputTarget] = []
    for filename_src, contents_path in paths.items():
        targets.append(
            OutputTarget(
                filename=compile_template(env, filename_src, f"filename {filename_src!r}"),
                contents=load_template_file(env, config.resolve_path(contents_path)),
                source=contents_path,
            )
        )
    return targets


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by ``Generator.generate()`` and ``SchemaGenerator.run()``.

    ``success`` is False when any unit failed to render or write, or a static
    file failed to copy.  Post-run failures are reported but do not count.
    """

    success: bool = False
    output_directory: str = ""
    total_units: int = 0
    total_elapsed_seconds: float = 0.0

    files: List[FileRecord] = field(default_factory=list)
    static_files: List[FileRecord] = field(default_factory=list)
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    unit_errors: List[str] = field(default_factory=list)
    post_run_errors: List[str] = field(default_factory=list)
    static_errors: List[str] = field(default_factory=list)
    inconsistencies: List[str] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.files) + len(self.static_files)

    @property
    def total_bytes(self) -> int:
        return sum(f.size_bytes for f in self.files) + sum(
            f.size_bytes for f in self.static_files
        )

    @property
    def total_lines(self) -> int:
        return sum(f.line_count for f in self.files)

    def summary(self) -> str:
        """Return a human-readable summary string."""
        rule: str = "-" * 60
        lines: List[str] = [
            "=" * 60,
            "  schemagen: Generation Report",
            "=" * 60,
            f"  Status:           {'SUCCESS' if self.success else 'FAILED'}",
            f"  Output:           {self.output_directory}",
            f"  Units rendered:   {self.total_units}",
            f"  Files written:    {len(self.files)}",
            f"  Static files:     {len(self.static_files)}",
            f"  Total lines:      {self.total_lines:,}",
            f"  Total bytes:      {self.total_bytes:,}",
            f"  Total time:       {self.total_elapsed_seconds:.3f}s",
        ]

        if self.step_metrics:
            lines.append(rule)
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "+" if step.success else "x"
                lines.append(
                    f"    {icon} {step.step_name:<20s} "
                    f"{step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        sections = (
            ("Unit Errors", self.unit_errors),
            ("Static Copy Errors", self.static_errors),
            ("Post-run Errors", self.post_run_errors),
            ("Inconsistencies", self.inconsistencies),
        )
        for title, entries in sections:
            if entries:
                lines.append(rule)
                lines.append(f"  {title} ({len(entries)}):")
                lines.extend(f"    - {entry}" for entry in entries)

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Generator: the atomic generation engine
# ---------------------------------------------------------------------------


class Generator:
    """
    Renders every target for every entity of a ``Database``.

    Usage::

        gen = Generator(config.config_data(), Path("out"), params={"pkg": "app"})
        report = gen.generate(db, Targets(table=[target]))
        print(report.summary())
    """

    def __init__(
        self,
        config_data: ConfigData,
        output_dir: Path,
        *,
        params: Optional[Dict[str, Any]] = None,
        post_run: Optional[Sequence[str]] = None,
        static_dir: Optional[Path] = None,
    ) -> None:
        self._config_data: ConfigData = config_data
        self._params: Dict[str, Any] = dict(params or {})
        self._post_run: List[str] = list(post_run or [])
        self._static_dir: Optional[Path] = static_dir
        self._exporter: FileExporter = FileExporter(output_dir)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate(self, db: Database, targets: Targets) -> GenerationReport:
        report: GenerationReport = GenerationReport(
            output_directory=str(self._exporter.output_dir)
        )
        start: float = time.perf_counter()
        written: Set[str] = set()

        with Timer("render") as t_render:
            for schema_data in iter_schema_data(db, self._config_data, self._params):
                for target in targets.schema:
                    self._run_unit(schema_data, target, report, written)
            for table_data in iter_table_data(db, self._config_data, self._params):
                for target in targets.table:
                    self._run_unit(table_data, target, report, written)
            for enum_data in iter_enum_data(db, self._config_data, self._params):
                for target in targets.enum:
                    self._run_unit(enum_data, target, report, written)

        report.step_metrics.append(
            GenerationStepMetric(
                step_name="Render & Write",
                success=not report.unit_errors,
                elapsed_seconds=t_render.elapsed,
                detail=f"{len(report.files)} files, {len(report.unit_errors)} failed",
            )
        )

        if self._static_dir is not None:
            with Timer("static") as t_static:
                copied: StaticCopyResult = self._exporter.copy_static(self._static_dir)
            report.static_files.extend(copied.files)
            report.static_errors.extend(copied.errors)
            report.step_metrics.append(
                GenerationStepMetric(
                    step_name="Static Copy",
                    success=copied.success,
                    elapsed_seconds=t_static.elapsed,
                    detail=f"{len(copied.files)} files",
                )
            )

        report.success = not report.unit_errors and not report.static_errors
        report.total_elapsed_seconds = time.perf_counter() - start

        if report.success:
            logger.info(
                "Generation completed: %d files, %d bytes.",
                report.total_files,
                report.total_bytes,
            )
        else:
            logger.error(
                "Generation completed with %d failed unit(s), %d static error(s).",
                len(report.unit_errors),
                len(report.static_errors),
            )
        return report

    # -----------------------------------------------------------------
    # Internal: one unit
    # -----------------------------------------------------------------

    def _run_unit(
        self,
        data: SchemaData | TableData | EnumData,
        target: OutputTarget,
        report: GenerationReport,
        written: Set[str],
    ) -> None:
        report.total_units += 1
        context: Dict[str, Any] = data.context()

        try:
            filename: str = self._render(data.label, "filename", target.filename, context)
            if not filename.strip():
                raise TemplateRenderError(data.label, "filename", "rendered empty")
            contents: str = self._render(
                data.label, "contents", target.contents, context, target.source
            )
        except TemplateRenderError as exc:
            logger.error("%s", exc)
            report.unit_errors.append(str(exc))
            return

        if filename in written:
            logger.warning("%s overwrites %s written earlier in this run", data.label, filename)

        try:
            record: FileRecord = self._exporter.write(filename, contents)
        except (OSError, ValueError) as exc:
            msg: str = f"{data.label}: cannot write {filename}: {exc}"
            logger.error(msg)
            report.unit_errors.append(msg)
            return

        written.add(filename)
        report.files.append(record)
        logger.info("Generated %s", record.relative_path)

        error: Optional[str] = self._exporter.run_post_run(self._post_run, record)
        if error is not None:
            report.post_run_errors.append(error)

    @staticmethod
    def _render(
        label: str,
        stage: str,
        template: Template,
        context: Dict[str, Any],
        source: Optional[str] = None,
    ) -> str:
        try:
            return template.render(context)
        except Exception as exc:
            raise TemplateRenderError(label, stage, f"{type(exc).__name__}: {exc}", source) from exc


# ---------------------------------------------------------------------------
# SchemaGenerator: master orchestrator
# ---------------------------------------------------------------------------


class SchemaGenerator:
    """
    Runs the full pipeline for one loaded ``Config``.

    Usage::

        report = SchemaGenerator(load_config("schemagen.yaml")).run()
        print(report.summary())

    Templates are compiled in the constructor, so template syntax errors
    surface as ``ConfigError`` before any database connection is made.
    """

    def __init__(self, config: Config, *, driver: Optional[Driver] = None) -> None:
        self._config: Config = config
        self._driver: Optional[Driver] = driver
        self._env: Environment = create_environment()
        self._convert_name = compile_name_converter(self._env, config.name_conversion)
        self._targets: Targets = Targets(
            schema=compile_targets(self._env, config.schema_paths, config),
            table=compile_targets(self._env, config.table_paths, config),
            enum=compile_targets(self._env, config.enum_paths, config),
        )
        self.inconsistencies: List[str] = []
        self.step_metrics: List[GenerationStepMetric] = []

    @property
    def targets(self) -> Targets:
        return self._targets

    # -----------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------

    def introspect(self) -> Database:
        """Query the database and build the relational graph."""
        driver: Driver = self._driver or get_driver(self._config.db_type)

        with Timer("introspect") as t_query:
            result: IntrospectionResult = driver.parse(
                self._config.conn_str,
                self._config.schemas,
                self._config.table_filter(),
            )
        self.step_metrics.append(
            GenerationStepMetric(
                step_name="Introspect",
                elapsed_seconds=t_query.elapsed,
                detail=repr(result),
            )
        )

        builder: ModelBuilder = ModelBuilder(
            self._config.schemas,
            filter_tables=self._config.table_filter(),
            convert_name=self._convert_name,
            type_map=self._config.type_map,
            nullable_type_map=self._config.nullable_type_map,
        )
        with Timer("build") as t_build:
            db: Database = builder.build(result)
        self.inconsistencies = list(builder.inconsistencies)
        self.step_metrics.append(
            GenerationStepMetric(
                step_name="Build Model",
                elapsed_seconds=t_build.elapsed,
                detail=f"{len(self.inconsistencies)} inconsistencies",
            )
        )
        return db

    def run(self) -> GenerationReport:
        """Introspect, build and generate; returns the generation report."""
        start: float = time.perf_counter()
        self.step_metrics = []
        db: Database = self.introspect()

        generator: Generator = Generator(
            self._config.config_data(),
            self._config.output_path,
            params=self._config.params,
            post_run=self._config.post_run,
            static_dir=self._config.static_path,
        )
        report: GenerationReport = generator.generate(db, self._targets)
        report.step_metrics[:0] = self.step_metrics
        report.inconsistencies = list(self.inconsistencies)
        report.total_elapsed_seconds = time.perf_counter() - start
        return report

    def preview(self, fmt: str = "yaml") -> str:
        """Introspect and build, then render the graph as text."""
        return render_preview(self.introspect(), fmt)


__all__: List[str] = [
    "OutputTarget",
    "Targets",
    "compile_targets",
    "GenerationStepMetric",
    "GenerationReport",
    "Generator",
    "SchemaGenerator",
]

logger.debug("schemagen.generator loaded.")
