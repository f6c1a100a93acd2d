#!/usr/bin/env python3
"""
C# P/Invoke binding generator

This entrypoint wires together:
- Loading (JSON) of native function descriptors and an optional type map
- Translation: classification, overload permutation and body synthesis
- Emitting (Jinja2-based) to generate the C# sources

Outputs:
- <output_dir>/<DelegatesClass>.cs
- <output_dir>/<OutputClass>.cs
- <optional> <output_dir>/manifest.json (for introspection)

Usage (example):
  python -m pinvoke_binding_generator.generate_bindings \
    --spec gl.json \
    --spec glext.json \
    --typemap gl.typemap.json \
    --namespace OpenTK.Graphics \
    --output-dir src/generated

Exit codes:
  0 success, 1 templating setup failed, 2 no input given, 3 input could not
  be loaded, 4 generation failed, 5 manifest could not be written.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

# Local modules
from .errors import BindingGeneratorError
from .models import GenerationContext
from .utils import TemplateRenderer, configure_logging
from .manifest import emit_manifest
from .parsing.spec_loader import load_spec_files
from .emitters.csharp_emitter import CSharpEmitter, EmitterConfig
from .translator import WrapperTranslator
from .type_mapping import NamingConvention, TypeMap


# --------------------------
# Helpers
# --------------------------

def discover_spec_files(paths: List[str]) -> List[Path]:
    """
    Expand files and directories into a unique list of JSON specification
    files. Directories contribute their *.json files in sorted order.
    """
    results: List[Path] = []
    for p in paths:
        pp = Path(p)
        if pp.is_file():
            results.append(pp.resolve())
        elif pp.is_dir():
            results.extend(sorted(f.resolve() for f in pp.glob("*.json")))
        else:
            logger.warning("Skipping non-existent path: %s", p)

    # De-duplicate preserving order
    seen: set[str] = set()
    unique: List[Path] = []
    for f in results:
        s = str(f)
        if s in seen:
            continue
        seen.add(s)
        unique.append(f)
    return unique


def resolve_log_level(ns: argparse.Namespace) -> int:
    if getattr(ns, "log_level", None):
        return getattr(logging, str(ns.log_level).upper(), logging.INFO)
    if getattr(ns, "verbose", 0) >= 1:
        return logging.DEBUG
    if getattr(ns, "quiet", 0) >= 2:
        return logging.ERROR
    if getattr(ns, "quiet", 0) == 1:
        return logging.WARNING
    return logging.INFO


# --------------------------
# CLI
# --------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    defaults = NamingConvention()
    p = argparse.ArgumentParser(description="Generate C# P/Invoke wrappers from native function descriptors")

    p.add_argument(
        "--spec",
        action="append",
        default=[],
        help="JSON specification file or directory of *.json files (repeatable). Files merge in order; the first definition of a function wins.",
    )
    p.add_argument(
        "--typemap",
        default=None,
        help="Optional JSON type map ({\"host_types\": {...}, \"portable_types\": {...}}) layered over the defaults.",
    )
    p.add_argument(
        "--output-dir",
        default="generated",
        help="Output directory for generated code.",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Optional templates directory. If omitted, package templates are used.",
    )
    p.add_argument(
        "--delegates-class",
        default=defaults.delegates_class,
        help="Name of the class holding the native entry points.",
    )
    p.add_argument(
        "--function-prefix",
        default=defaults.function_prefix,
        help="Prefix of the entry-point fields (e.g. 'gl' for Delegates.glClear).",
    )
    p.add_argument(
        "--output-class",
        default=defaults.output_class,
        help="Name of the public class holding the wrappers.",
    )
    p.add_argument(
        "--namespace",
        default=defaults.namespace,
        help="Namespace of the generated sources.",
    )
    p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not emit the JSON manifest alongside generated sources.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Load, translate and render without writing files.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG)."
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease verbosity (-q for WARNING, -qq for ERROR)."
    )
    p.add_argument(
        "--log-level",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET", "critical", "error", "warning", "info", "debug", "notset"],
        default=None,
        help="Explicit log level (overrides -v/-q)."
    )
    p.add_argument(
        "--log-format",
        default="%(levelname)s: %(message)s",
        help="Logging format string."
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional file to write logs to."
    )

    return p.parse_args(argv)


# --------------------------
# Main
# --------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = parse_args(argv)

    # Configure logging as early as possible
    configure_logging(
        level=resolve_log_level(ns),
        to_file=ns.log_file,
        fmt=getattr(ns, "log_format", "%(levelname)s: %(message)s"),
    )

    naming = NamingConvention(
        delegates_class=ns.delegates_class,
        function_prefix=ns.function_prefix,
        output_class=ns.output_class,
        namespace=ns.namespace,
    )
    ctx = GenerationContext(
        output_dir=Path(ns.output_dir).resolve(),
        templates_dir=Path(ns.templates_dir).resolve() if ns.templates_dir else None,
        naming=naming,
        dry_run=ns.dry_run,
    )

    # Initialize renderer (layered: user dir -> package templates)
    try:
        renderer = TemplateRenderer(ctx.templates_dir)
    except Exception:
        logger.exception("Failed to initialize templating")
        return 1

    spec_files = discover_spec_files(ns.spec)
    if not spec_files:
        logger.error("No specification files found. Provide --spec.")
        return 2

    # Load descriptors and the type map
    try:
        natives = load_spec_files(spec_files)
        type_map = TypeMap.from_json(ns.typemap) if ns.typemap else TypeMap()
    except (BindingGeneratorError, OSError, ValueError):
        logger.exception("Failed to load input")
        return 3

    logger.info("Loaded %d native function(s) from %d file(s)", len(natives), len(spec_files))

    # Translate and emit
    try:
        translator = WrapperTranslator(type_map, naming)
        report = translator.translate_all(natives.values())
        if report.failed:
            logger.warning("No wrappers generated for: %s", ", ".join(report.failed))

        emitter = CSharpEmitter(ctx=ctx, renderer=renderer, config=EmitterConfig())
        emitter.emit(translator.natives.values(), translator.registry)
    except Exception:
        logger.exception("Failed to generate files")
        return 4

    if ctx.dry_run:
        logger.info("Dry-run complete (no files written).")
        return 0

    # Optional: emit a JSON manifest of the generation data for debugging/inspection.
    if not ns.no_manifest:
        try:
            emit_manifest(ctx, translator.natives.values(), translator.registry, report)
        except Exception:
            logger.exception("Failed to emit generation manifest")
            return 5

    return 0


if __name__ == "__main__":
    sys.exit(main())
