#!/usr/bin/env python3
"""
Type mapping and naming conventions for P/Invoke wrappers.

This module owns the two lookups the wrapper-synthesis stages consume but do
not compute themselves:

- A catalog of native -> host type names (e.g. `GLuint` -> `UInt32`)
- A catalog of host -> portable type names (e.g. `UInt32` -> `Int32`); a type
  without an entry is its own portable equivalent

and the naming convention used by generated call sites (delegate table class,
function prefix, output class, opaque address type).

Typical usage (high level):

    from .type_mapping import TypeMap, NamingConvention

    type_map = TypeMap.from_json("gl.typemap.json")
    host = type_map.translate(TypeDescriptor("GLuint", is_pointer=True))
    # host.name == "UInt32", host.portable == "Int32"

Design notes:
- Lookups are keyed by the normalized base identifier: qualifiers such as
  `const` are dropped and pointer markers are handled by the descriptor's
  `is_pointer` flag, never by the name.
- User maps loaded from JSON are layered over the defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from .models import VENDOR_SUFFIXES, TypeDescriptor


# --------------------------
# Helpers
# --------------------------

def _strip_cv_and_class_kw(spelling: str) -> str:
    """
    Normalize a C type spelling to aid mapping heuristics:
    - Remove leading 'const', 'struct', 'enum'
    - Collapse repeated spaces
    - Keep pointer symbols for higher-level logic.
    """
    s = (spelling or "").strip()
    for kw in ("const ", "struct ", "enum "):
        if s.startswith(kw):
            s = s[len(kw):].lstrip()
    s = s.replace(" *", "*").replace("* ", "*")
    while "  " in s:
        s = s.replace("  ", " ")
    return s


def _base_identifier(spelling: str) -> str:
    """
    Extract the base identifier of a type spelling, ignoring pointers and CV qualifiers.
    Example:
      'const GLubyte *' -> 'GLubyte'
      'GLuint const*'   -> 'GLuint'
    """
    s = _strip_cv_and_class_kw(spelling).replace("*", " ").strip()
    tokens = [tok for tok in s.split() if tok not in ("const", "volatile")]
    return " ".join(tokens).strip()


def split_native_spelling(spelling: str) -> Tuple[str, int]:
    """
    Split a C-like spelling into (base identifier, pointer depth).
    'const GLuint *' -> ('GLuint', 1); 'void**' -> ('void', 2)
    """
    return _base_identifier(spelling), (spelling or "").count("*")


CS_KEYWORDS = frozenset({
    "abstract", "as", "base", "bool", "break", "byte", "case", "catch", "char",
    "checked", "class", "const", "continue", "decimal", "default", "delegate",
    "do", "double", "else", "enum", "event", "explicit", "extern", "false",
    "finally", "fixed", "float", "for", "foreach", "goto", "if", "implicit",
    "in", "int", "interface", "internal", "is", "lock", "long", "namespace",
    "new", "null", "object", "operator", "out", "override", "params", "private",
    "protected", "public", "readonly", "ref", "return", "sbyte", "sealed",
    "short", "sizeof", "stackalloc", "static", "string", "struct", "switch",
    "this", "throw", "true", "try", "typeof", "uint", "ulong", "unchecked",
    "unsafe", "ushort", "using", "virtual", "void", "volatile", "while",
})


def escape_identifier(name: str) -> str:
    """
    Make a name usable as a C# identifier: keywords get a leading '@'.
    'params' -> '@params'; 'count' -> 'count'
    """
    return f"@{name}" if name in CS_KEYWORDS else name


# --------------------------
# Defaults
# --------------------------

DEFAULT_HOST_TYPES: Dict[str, str] = {
    "void": "void",
    "GLvoid": "void",
    "GLenum": "int",
    "GLboolean": "bool",
    "GLbitfield": "UInt32",
    "GLbyte": "SByte",
    "GLubyte": "Byte",
    "GLshort": "Int16",
    "GLushort": "UInt16",
    "GLint": "Int32",
    "GLuint": "UInt32",
    "GLsizei": "Int32",
    "GLint64": "Int64",
    "GLuint64": "UInt64",
    "GLfloat": "Single",
    "GLclampf": "Single",
    "GLdouble": "Double",
    "GLclampd": "Double",
    "GLchar": "Char",
    "GLstring": "String",
    "GLintptr": "IntPtr",
    "GLsizeiptr": "IntPtr",
    "GLhandleARB": "UInt32",
}

DEFAULT_PORTABLE_TYPES: Dict[str, str] = {
    "SByte": "Byte",
    "UInt16": "Int16",
    "UInt32": "Int32",
    "UInt64": "Int64",
}


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class NamingConvention:
    """
    Names used by generated code.

    Call sites look like `<delegates_class>.<function_prefix><Name>(...)`.
    """
    delegates_class: str = "Delegates"
    function_prefix: str = "gl"
    output_class: str = "GL"
    namespace: str = "OpenGL"
    native_address_type: str = "IntPtr"
    object_type: str = "object"
    string_type: str = "System.String"
    vendor_suffixes: Tuple[str, ...] = VENDOR_SUFFIXES

    def to_dict(self) -> Dict:
        return {
            "delegates_class": self.delegates_class,
            "function_prefix": self.function_prefix,
            "output_class": self.output_class,
            "namespace": self.namespace,
            "native_address_type": self.native_address_type,
            "object_type": self.object_type,
            "string_type": self.string_type,
        }


@dataclass
class TypeMap:
    """
    Native -> host and host -> portable type-name lookups.
    """
    host_types: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HOST_TYPES))
    portable_types: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PORTABLE_TYPES))

    @classmethod
    def from_json(cls, path: Union[str, Path], base: Optional["TypeMap"] = None) -> "TypeMap":
        """
        Load `{"host_types": {...}, "portable_types": {...}}` and layer it over
        `base` (defaults if omitted).
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Type map {path} must contain a JSON object")
        tm = base.copy() if base else cls()
        tm.host_types.update({str(k): str(v) for k, v in (data.get("host_types") or {}).items()})
        tm.portable_types.update({str(k): str(v) for k, v in (data.get("portable_types") or {}).items()})
        return tm

    def copy(self) -> "TypeMap":
        return TypeMap(host_types=dict(self.host_types), portable_types=dict(self.portable_types))

    # ---- Lookups ----

    def host(self, native_name: str) -> str:
        base = _base_identifier(native_name)
        return self.host_types.get(base, base)

    def portable(self, host_name: str) -> str:
        return self.portable_types.get(host_name, host_name)

    def is_portable(self, host_name: str) -> bool:
        return self.portable(host_name) == host_name

    def translate(self, t: TypeDescriptor) -> TypeDescriptor:
        """
        Copy of `t` with its name mapped to the host type and the portable
        equivalent filled in.
        """
        out = t.copy()
        out.name = self.host(t.name)
        portable = self.portable(out.name)
        out.portable_name = portable if portable != out.name else None
        return out

    def to_dict(self) -> Dict:
        return {
            "host_types": dict(self.host_types),
            "portable_types": dict(self.portable_types),
        }


__all__ = [
    "CS_KEYWORDS",
    "escape_identifier",
    "DEFAULT_HOST_TYPES",
    "DEFAULT_PORTABLE_TYPES",
    "NamingConvention",
    "TypeMap",
    "split_native_spelling",
]
