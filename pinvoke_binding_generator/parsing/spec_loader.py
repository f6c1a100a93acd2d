#!/usr/bin/env python3
"""
JSON input adapter producing native function descriptors.

Document layout:

    {
      "functions": [
        {
          "name": "GenTextures",
          "category": "VERSION_1_1",
          "version": "1.1",
          "return": {"type": "void"},
          "parameters": [
            {"name": "n", "type": "GLsizei", "flow": "in"},
            {"name": "textures", "type": "GLuint", "pointer": true, "array": 1, "flow": "out"}
          ]
        }
      ]
    }

A type spelling may carry its own pointer marker ("const GLubyte *"); it is
equivalent to `"pointer": true`. A parameter with `"reference": true` is
passed by address at the native entry point. Parameter names that are C#
keywords are escaped ("params" -> "@params").

Several documents merge in order; a function defined twice keeps its first
definition.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union
import logging

from ..errors import SpecificationError
from ..models import FlowDirection, NativeFunction, NativeFunctionCollection, Parameter, TypeDescriptor
from ..type_mapping import escape_identifier, split_native_spelling

logger = logging.getLogger(__name__)


# --------------------------
# Descriptor builders
# --------------------------

def _type_from_json(data: Any, function_name: str, what: str) -> TypeDescriptor:
    if isinstance(data, str):
        data = {"type": data}
    if not isinstance(data, Mapping):
        raise SpecificationError(f"{what} must be an object or a type string", function_name)

    spelling = data.get("type")
    if not isinstance(spelling, str) or not spelling.strip():
        raise SpecificationError(f"{what} has no type", function_name)

    base, depth = split_native_spelling(spelling)
    rank = data.get("array", 0)
    if not isinstance(rank, int) or isinstance(rank, bool) or rank < 0:
        raise SpecificationError(f"{what} has an invalid array rank {rank!r}", function_name)

    return TypeDescriptor(
        name=base,
        is_pointer=bool(data.get("pointer", False)) or depth > 0,
        array_rank=rank,
    )


def _parameter_from_json(data: Any, function_name: str, index: int) -> Parameter:
    if not isinstance(data, Mapping):
        raise SpecificationError(f"parameter #{index} must be an object", function_name)
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise SpecificationError(f"parameter #{index} has no name", function_name)

    try:
        flow = FlowDirection.from_keyword(data.get("flow"))
    except ValueError as ex:
        raise SpecificationError(f"parameter '{name}': {ex}", function_name) from ex

    t = _type_from_json(data, function_name, f"parameter '{name}'")
    is_reference = bool(data.get("reference", False))
    if is_reference:
        t.is_pointer = True

    return Parameter(name=escape_identifier(name.strip()), type=t, flow=flow, is_reference=is_reference)


def function_from_json(data: Any) -> NativeFunction:
    """Build one NativeFunction; raises SpecificationError on malformed input."""
    if not isinstance(data, Mapping):
        raise SpecificationError("function entry must be an object")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise SpecificationError("function entry has no name")
    name = name.strip()

    params = data.get("parameters") or []
    if not isinstance(params, list):
        raise SpecificationError("'parameters' must be a list", name)

    return NativeFunction(
        name=name,
        return_type=_type_from_json(data.get("return", "void"), name, "return type"),
        parameters=[_parameter_from_json(p, name, i) for i, p in enumerate(params)],
        category=str(data.get("category", "") or ""),
        version=str(data.get("version", "") or ""),
    )


# --------------------------
# Public API
# --------------------------

def load_functions(
    document: Mapping[str, Any],
    into: Union[NativeFunctionCollection, None] = None,
    source: str = "<document>",
) -> NativeFunctionCollection:
    """Add every function of a parsed document to `into` (a new collection if omitted)."""
    collection = into if into is not None else NativeFunctionCollection()
    if not isinstance(document, Mapping) or not isinstance(document.get("functions"), list):
        raise SpecificationError(f"{source}: expected an object with a 'functions' list")

    entries: List[Dict] = document["functions"]
    accepted = collection.merge(function_from_json(entry) for entry in entries)
    logger.info("Loaded %d of %d function(s) from %s", accepted, len(entries), source)
    return collection


def load_spec_files(paths: Iterable[Union[str, Path]]) -> NativeFunctionCollection:
    """
    Load and merge specification files in order. Unreadable files and invalid
    JSON raise SpecificationError.
    """
    collection = NativeFunctionCollection()
    for path in paths:
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except OSError as ex:
            raise SpecificationError(f"cannot read {path}: {ex}") from ex
        except json.JSONDecodeError as ex:
            raise SpecificationError(f"{path} is not valid JSON: {ex}") from ex
        load_functions(document, into=collection, source=str(path))
    return collection


__all__ = ["function_from_json", "load_functions", "load_spec_files"]
