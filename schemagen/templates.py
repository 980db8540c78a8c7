# File: schemagen/templates.py
"""
schemagen - Template Engine
===========================
Thin layer over Jinja2: one shared ``Environment`` with strict undefined
handling and the case/inflection filters from ``schemagen.utils``.

Templates are compiled once when the configuration is loaded; a template
with a syntax error is a configuration problem, not a generation failure.

Filters available in every template::

    snake  pascal  camel  kebab  title  plural  singular
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from jinja2 import BaseLoader, Environment, StrictUndefined, Template, TemplateError

from schemagen.errors import ConfigError, TemplateRenderError
from schemagen.utils import (
    read_file,
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_plural,
    to_singular,
    to_snake_case,
    to_title_human,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.templates")

FILTERS: Dict[str, Callable[[str], str]] = {
    "snake": to_snake_case,
    "pascal": to_pascal_case,
    "camel": to_camel_case,
    "kebab": to_kebab_case,
    "title": to_title_human,
    "plural": to_plural,
    "singular": to_singular,
}


def create_environment() -> Environment:
    """
    Build the Jinja2 environment shared by every template of a run.

    ``StrictUndefined`` turns a misspelled field into a render error instead
    of an empty string; ``keep_trailing_newline`` keeps output byte-exact.
    """
    env: Environment = Environment(
        loader=BaseLoader(),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters.update(FILTERS)
    return env


def compile_template(env: Environment, source: str, origin: str) -> Template:
    """Compile *source*; syntax errors become ``ConfigError`` naming *origin*."""
    try:
        return env.from_string(source)
    except TemplateError as exc:
        raise ConfigError(f"invalid template {origin}: {exc}") from exc


def load_template_file(env: Environment, path: Path) -> Template:
    """Read and compile a contents template from disk."""
    try:
        source: str = read_file(path)
    except OSError as exc:
        raise ConfigError(f"cannot read template {path}: {exc}") from exc
    logger.debug("Compiled template %s", path)
    return compile_template(env, source, str(path))


def compile_name_converter(
    env: Environment, source: Optional[str]
) -> Callable[[str], str]:
    """
    Turn a ``name_conversion`` template into a ``str -> str`` callable.

    The template sees the database name as ``name``, e.g.
    ``{{ name | pascal }}``.  An empty template leaves names unchanged.
    """
    if not source:
        return lambda name: name

    template: Template = compile_template(env, source, "name_conversion")

    def convert(name: str) -> str:
        try:
            return template.render(name=name)
        except TemplateError as exc:
            raise TemplateRenderError(name, "name_conversion", str(exc)) from exc

    return convert


__all__: List[str] = [
    "FILTERS",
    "create_environment",
    "compile_template",
    "load_template_file",
    "compile_name_converter",
]

logger.debug("schemagen.templates loaded.")
