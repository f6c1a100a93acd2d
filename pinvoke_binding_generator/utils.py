#!/usr/bin/env python3
"""
Utilities for templating (Jinja2) and file I/O for the P/Invoke binding generator.

This module provides:
- Layered Jinja2 environment creation with user templates and package templates.
- Template filters for rendering C# declarations and statement blocks.
- File writing helpers (atomic writes, newline normalization, idempotency).

The goal is to keep the rest of the codebase focused on synthesis and emission logic.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union, TextIO
import logging

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
)

from .type_mapping import escape_identifier

logger = logging.getLogger(__name__)

PACKAGE_NAME = "pinvoke_binding_generator"


def configure_logging(
    level: Optional[Union[int, str]] = None,
    *,
    to_file: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
    propagate_package_loggers: bool = True,
) -> None:
    """
    Configure project-wide logging with consistent formatting and optional file output.

    Parameters:
    - level: int or name (e.g., 'INFO', 'DEBUG'). Defaults to INFO.
    - to_file: path to a log file; if provided, logs are also written there.
    - fmt: logging format string. Defaults to '%(levelname)s: %(message)s'.
    - stream: stream for console logs (defaults to sys.stderr).
    - propagate_package_loggers: whether the package logger propagates to root.
    """
    if level is None:
        resolved_level = logging.INFO
    elif isinstance(level, str):
        resolved_level = getattr(logging, level.upper(), logging.INFO)
    else:
        resolved_level = int(level)

    log_format = fmt or "%(levelname)s: %(message)s"
    stream = stream or sys.stderr

    # Reset root handlers for deterministic setup
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(resolved_level)

    handlers: List[logging.Handler] = []

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(resolved_level)
    stream_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(stream_handler)

    if to_file:
        file_handler = logging.FileHandler(str(to_file), mode="w")
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(logging.Formatter(log_format))
        handlers.append(file_handler)

    for h in handlers:
        root.addHandler(h)

    pkg_logger = logging.getLogger(PACKAGE_NAME)
    pkg_logger.setLevel(resolved_level)
    pkg_logger.propagate = propagate_package_loggers


# ----------------------------------------
# Jinja environment helpers
# ----------------------------------------

class TemplateRenderer:
    """
    A thin wrapper over a Jinja2 Environment with layered loaders and C# filters.
    - templates_dir: user-provided templates directory (highest precedence)
    - package templates: pinvoke_binding_generator/templates
    """

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        loaders: List[Any] = []

        # 1) User-provided directory
        if templates_dir:
            p = Path(templates_dir)
            if p.is_dir():
                loaders.append(FileSystemLoader(str(p)))
            else:
                logger.warning("Templates directory %s does not exist; using package templates", p)

        # 2) Package templates. PackageLoader needs an importable package with
        # a resolvable location; a source checkout may only have the directory.
        pkg_templates_fs = Path(__file__).parent / "templates"
        try:
            loaders.append(PackageLoader(PACKAGE_NAME, "templates"))
        except ValueError:
            loaders.append(FileSystemLoader(str(pkg_templates_fs)))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )

        self._register_filters()
        self._register_globals()

    # ---- Filters and globals registration ----

    def _register_filters(self) -> None:
        self.env.filters["cs_identifier"] = escape_identifier
        self.env.filters["cs_block"] = _filter_cs_block
        self.env.filters["cs_class_name"] = _filter_cs_class_name

    def _register_globals(self) -> None:
        self.env.globals["len"] = len

    # ---- Rendering ----

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise RuntimeError(f"Template not found: {template_name}") from e
        return template.render(**context)


# ----------------------------------------
# Template filter implementations
# ----------------------------------------

def _filter_cs_block(lines: Iterable[str], level: int = 0) -> str:
    """
    Render statement lines at the given indentation level (4 spaces per level).
    Blank lines stay blank.
    """
    pad = "    " * int(level)
    return "\n".join(f"{pad}{line}" if line.strip() else "" for line in lines or [])


def _filter_cs_class_name(extension: str) -> str:
    """
    Nested class name for an extension tag. Tags that start with a digit
    (e.g. '3DFX') are not valid identifiers and get a leading underscore.
    """
    name = "".join(ch for ch in (extension or "") if ch.isalnum() or ch == "_")
    if not name:
        return "_"
    if name[0].isdigit():
        name = f"_{name}"
    return name


# ----------------------------------------
# File I/O helpers
# ----------------------------------------

def ensure_dir(p: Path) -> None:
    """
    Ensure directory exists (mkdir -p).
    """
    Path(p).mkdir(parents=True, exist_ok=True)


def normalize_newlines(text: str) -> str:
    """
    Normalize to Unix newlines for reproducible diffs.
    """
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _read_text_if_exists(path: Path, encoding: str = "utf-8") -> Optional[str]:
    try:
        with open(path, "r", encoding=encoding, newline="") as f:
            return f.read()
    except FileNotFoundError:
        return None


def atomic_write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    make_parents: bool = True,
    mode: Optional[int] = 0o644,
    log: bool = True,
    only_if_changed: bool = True,
) -> bool:
    """
    Write text atomically to the given path:
    - Optionally avoid writing if the content is unchanged.
    - Write to a temp file in the same directory and os.replace to final path.
    - Set POSIX file mode if provided.

    Returns True if a write occurred, False if skipped due to idempotency.
    """
    path = Path(path)
    content = normalize_newlines(content)
    if make_parents:
        ensure_dir(path.parent)

    if only_if_changed:
        old = _read_text_if_exists(path, encoding=encoding)
        if old is not None and normalize_newlines(old) == content:
            if log:
                logger.debug("[skip] %s (unchanged)", path)
            return False

    tmp_path = None
    try:
        # Temp file in the same directory so os.replace stays atomic
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        tmp_path = None
        if log:
            logger.info("[write] %s", path)
        return True
    finally:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp_path)


def write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    dry_run: bool = False,
    log: bool = True,
) -> bool:
    """
    Convenience wrapper over atomic_write_text with optional dry-run support.
    Returns True if the file was written.
    """
    if dry_run:
        if log:
            logger.info("[dry-run] write %s", path)
        return False
    return atomic_write_text(Path(path), content, encoding=encoding, log=log)


__all__ = [
    "PACKAGE_NAME",
    "TemplateRenderer",
    "configure_logging",
    "ensure_dir",
    "normalize_newlines",
    "atomic_write_text",
    "write_text",
]
