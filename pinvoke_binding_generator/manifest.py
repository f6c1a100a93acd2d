import sys
import os
import platform
import shlex
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata

import json
from typing import Iterable, Optional
from .models import GeneratedFunction, GenerationContext, NativeFunction
from .translator import TranslationReport
from .utils import write_text

import logging
logger = logging.getLogger(__name__)

GENERATOR_NAME = "pinvoke-binding-generator"


def generator_version() -> str:
    try:
        return importlib_metadata.version(GENERATOR_NAME)
    except importlib_metadata.PackageNotFoundError:
        return "unknown"


def build_manifest(
    ctx: GenerationContext,
    natives: Iterable[NativeFunction],
    wrappers: Iterable[GeneratedFunction],
    report: Optional[TranslationReport] = None,
) -> dict:
    """
    JSON-serializable description of a generation run: generator metadata,
    invocation, environment, naming settings and the functions it produced.
    """
    natives = list(natives)
    wrappers = list(wrappers)

    argv = list(getattr(sys, "argv", []) or [])
    command_line = " ".join(shlex.quote(a) for a in argv) if argv else ""

    env_info = {
        "python_version": sys.version,
        "python_executable": sys.executable,
        "platform": platform.platform(),
        "system": platform.system(),
        "machine": platform.machine(),
        "cwd": os.getcwd(),
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }

    return {
        "generator": {
            "name": GENERATOR_NAME,
            "version": generator_version(),
        },
        "invocation": {
            "argv": argv,
            "command_line": command_line,
        },
        "environment": env_info,
        "context": ctx.to_dict(),
        "native_count": len(natives),
        "wrapper_count": len(wrappers),
        "failed": list(report.failed) if report else [],
        "natives": [
            {
                "name": f.name,
                "extension": f.extension,
                "needs_wrapper": f.needs_wrapper,
                "unsafe": f.requires_unsafe,
                "portable": f.is_portable,
            }
            for f in natives
        ],
        "wrappers": [
            {"signature": w.signature_key, "portable": w.is_portable}
            for w in wrappers
        ],
    }


def emit_manifest(
    ctx: GenerationContext,
    natives: Iterable[NativeFunction],
    wrappers: Iterable[GeneratedFunction],
    report: Optional[TranslationReport] = None,
) -> Optional[str]:
    """
    Write manifest.json under the output directory. Returns the manifest
    path, or None on a dry run.
    """
    manifest = build_manifest(ctx, natives, wrappers, report)
    manifest_path = ctx.output_dir / "manifest.json"
    content = json.dumps(manifest, indent=2) + "\n"
    write_text(manifest_path, content, dry_run=ctx.dry_run)
    if ctx.dry_run:
        return None
    return str(manifest_path)
