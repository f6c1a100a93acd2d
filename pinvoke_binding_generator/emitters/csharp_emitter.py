#!/usr/bin/env python3
"""
Emitter module for generating C# P/Invoke binding sources.

This module takes the annotated native functions and the registered wrappers
and uses a Jinja2-based renderer to emit:

- <DelegatesClass>.cs  (one delegate type and one entry-point field per native function)
- <OutputClass>.cs     (every registered wrapper, grouped per extension)

Design goals:
- Clean separation of concerns from synthesis and data modeling.
- Atomic, idempotent file writing.
- Configurable template names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..models import CORE_EXTENSION, GeneratedFunction, GenerationContext, NativeFunction, build_template_context
from ..utils import TemplateRenderer, ensure_dir, write_text

logger = logging.getLogger(__name__)


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class EmitterConfig:
    """
    Template names used by the C# emitter. Templates with the same names in a
    user templates directory take precedence over the packaged ones.
    """
    delegates_template: str = "delegates.cs.j2"
    wrappers_template: str = "wrappers.cs.j2"


# --------------------------
# Emitter
# --------------------------

class CSharpEmitter:
    """
    Emit C# sources from synthesized wrappers.

    Usage:
        emitter = CSharpEmitter(ctx, renderer)
        written = emitter.emit(translator.natives.values(), translator.registry)
    """

    def __init__(self, ctx: GenerationContext, renderer: TemplateRenderer, config: Optional[EmitterConfig] = None) -> None:
        self.ctx = ctx
        self.renderer = renderer
        self.config = config or EmitterConfig()

    @property
    def delegates_path(self) -> Path:
        return self.ctx.output_dir / f"{self.ctx.naming.delegates_class}.cs"

    @property
    def wrappers_path(self) -> Path:
        return self.ctx.output_dir / f"{self.ctx.naming.output_class}.cs"

    # ---- Public API ----

    def render(
        self,
        natives: Iterable[NativeFunction],
        wrappers: Iterable[GeneratedFunction],
    ) -> Dict[Path, str]:
        """Render both sources without touching the file system."""
        context = build_template_context(self.ctx.naming, natives, wrappers)
        context["core_extension"] = CORE_EXTENSION
        return {
            self.delegates_path: self.renderer.render(self.config.delegates_template, context),
            self.wrappers_path: self.renderer.render(self.config.wrappers_template, context),
        }

    def emit(
        self,
        natives: Iterable[NativeFunction],
        wrappers: Iterable[GeneratedFunction],
    ) -> List[Path]:
        """
        Render and write both sources. Returns the paths that were written
        (unchanged files and dry runs write nothing).
        """
        try:
            outputs = self.render(list(natives), list(wrappers))
        except Exception:
            logger.exception("Failed to render C# templates; aborting generation")
            raise

        if not self.ctx.dry_run:
            ensure_dir(self.ctx.output_dir)

        written: List[Path] = []
        for path, content in outputs.items():
            try:
                if write_text(path, content, dry_run=self.ctx.dry_run):
                    written.append(path)
            except OSError:
                logger.exception("Failed to write %s", path)
                raise

        logger.info("Generation complete under: %s", self.ctx.output_dir)
        return written


__all__ = [
    "EmitterConfig",
    "CSharpEmitter",
]
