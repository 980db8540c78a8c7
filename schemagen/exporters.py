# File: schemagen/exporters.py
"""
schemagen - File Exporter (File-System Manager)
===============================================

Responsible for:
    1. Writing each generated file atomically (temp file + ``os.replace``).
    2. Running the configured post-run command against a written file.
    3. Copying a static asset tree into the output directory.
    4. Recording size, line count and checksum for everything written.

A write either completes fully or leaves the destination exactly as it
was; there is no direct-write fallback.  Each file is its own unit, so a
failure never rolls back files written before it.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Dict, List, Optional, Sequence, Union

from schemagen.utils import count_lines, expand_env, sha256_hex, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemagen.exporters")

# Variable naming the just-written file inside post_run arguments.
POST_RUN_FILE_VAR: str = "SCHEMAGEN_FILE"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single written file."""

    relative_path: str
    absolute_path: str
    size_bytes: int
    line_count: int
    sha256: str


@dataclass(frozen=False, slots=True)
class StaticCopyResult:
    """Outcome of ``FileExporter.copy_static``."""

    files: List[FileRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# FileExporter
# ---------------------------------------------------------------------------


class FileExporter:
    """
    Writes generated output below one root directory.

    Usage::

        exporter = FileExporter(Path("./generated"))
        record = exporter.write("models/users.py", contents)
        error = exporter.run_post_run(["black", "$SCHEMAGEN_FILE"], record)

    Thread-safety: NOT thread-safe.  Use one exporter per output directory.
    """

    def __init__(self, output_dir: Path) -> None:
        self._output_dir: Path = Path(output_dir).resolve()
        logger.debug("FileExporter initialised: output_dir=%s.", self._output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    # -----------------------------------------------------------------
    # Writing
    # -----------------------------------------------------------------

    def write(self, rel_path: str, content: Union[str, bytes]) -> FileRecord:
        """
        Atomically write *content* to ``output_dir / rel_path``.

        Raises ``ValueError`` for an empty or absolute *rel_path* and
        ``OSError`` (destination untouched) if the write fails.
        """
        if not rel_path or not rel_path.strip():
            raise ValueError("empty output filename")
        if PurePath(rel_path).is_absolute():
            raise ValueError(f"output filename must be relative: {rel_path}")

        data: bytes = content.encode("utf-8") if isinstance(content, str) else content
        full_path: Path = self._output_dir / rel_path
        write_file(full_path, data)

        record: FileRecord = FileRecord(
            relative_path=rel_path,
            absolute_path=str(full_path),
            size_bytes=len(data),
            line_count=count_lines(data),
            sha256=sha256_hex(data),
        )
        logger.debug(
            "Wrote file: %s (%d bytes, %d lines).",
            rel_path,
            record.size_bytes,
            record.line_count,
        )
        return record

    # -----------------------------------------------------------------
    # Post-run hook
    # -----------------------------------------------------------------

    @staticmethod
    def expand_post_run(command: Sequence[str], path: str) -> List[str]:
        """Expand ``$VAR`` in every argument; ``$SCHEMAGEN_FILE`` is *path*."""
        extra: Dict[str, str] = {POST_RUN_FILE_VAR: path}
        return [expand_env(arg, extra) for arg in command]

    def run_post_run(self, command: Sequence[str], record: FileRecord) -> Optional[str]:
        """
        Run *command* for one written file.

        Returns an error message on launch failure or non-zero exit, else
        ``None``.  Never touches the written file itself.
        """
        if not command:
            return None

        args: List[str] = self.expand_post_run(command, record.absolute_path)
        logger.debug("Running post-run command: %s", args)
        try:
            proc: subprocess.CompletedProcess = subprocess.run(
                args,
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
                cwd=str(self._output_dir),
            )
        except (OSError, ValueError) as exc:
            msg: str = f"post-run for {record.relative_path} failed to start: {exc}"
            logger.error(msg)
            return msg

        if proc.stdout:
            logger.debug("post-run stdout: %s", proc.stdout.rstrip())
        if proc.returncode != 0:
            msg = (
                f"post-run for {record.relative_path} exited with "
                f"{proc.returncode}: {proc.stderr.strip()}"
            )
            logger.error(msg)
            return msg
        return None

    # -----------------------------------------------------------------
    # Static assets
    # -----------------------------------------------------------------

    def copy_static(self, source_dir: Path) -> StaticCopyResult:
        """
        Copy every regular file under *source_dir* into the output root,
        preserving relative paths.

        Directories are only created as needed.  A file that cannot be
        copied is recorded and the copy continues with the next one.
        """
        result: StaticCopyResult = StaticCopyResult()
        src_root: Path = Path(source_dir)

        if not src_root.is_dir():
            msg: str = f"static directory not found: {src_root}"
            logger.error(msg)
            result.errors.append(msg)
            return result

        for src in sorted(src_root.rglob("*")):
            if src.is_symlink() or not src.is_file():
                continue
            rel_path: str = src.relative_to(src_root).as_posix()
            try:
                result.files.append(self.write(rel_path, src.read_bytes()))
            except OSError as exc:
                msg = f"Failed to copy static file {rel_path}: {exc}"
                logger.error(msg)
                result.errors.append(msg)

        logger.info(
            "Copied %d static files from %s (%d errors).",
            len(result.files),
            src_root,
            len(result.errors),
        )
        return result


__all__: List[str] = [
    "POST_RUN_FILE_VAR",
    "FileRecord",
    "StaticCopyResult",
    "FileExporter",
]

logger.debug("schemagen.exporters loaded.")
