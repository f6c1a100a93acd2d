#!/usr/bin/env python3
"""
Data models for the P/Invoke binding generator.

This module provides the descriptors the wrapper-synthesis stages operate on:
- Type occurrences (return value or parameter) with pointer/array shape and a
  wrapper classification
- Parameters (type + name + flow direction + reference flag)
- Native functions (the raw entry points described by the API specification)
- Generated functions (managed overloads that marshal to a native entry point)
- Generation context (paths, naming, flags)

The models are designed to be consumed by:
- The input adapter (to populate native functions)
- The classifier, permutation engine and body synthesizer
- The emitters/templates (Jinja2) to render C# source

Every derived variant is produced with `copy()`, which never shares parameter
lists or type descriptors with its source. Synthesis mutates copies only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .type_mapping import NamingConvention

logger = logging.getLogger(__name__)

# Vendor suffixes that mark a function as belonging to an extension.
# Longer suffixes come first so that e.g. "SGIX" is not reported as "SGI".
VENDOR_SUFFIXES: Tuple[str, ...] = (
    "GREMEDY",
    "INTEL",
    "APPLE",
    "MESA",
    "SGIS",
    "SGIX",
    "SUNX",
    "INGR",
    "3DFX",
    "ARB",
    "EXT",
    "ATI",
    "SGI",
    "SUN",
    "IBM",
    "PGI",
    "OML",
    "I3D",
    "NV",
    "HP",
)

CORE_EXTENSION = "Core"

# (function name, ordered parameter type spellings)
Signature = Tuple[str, Tuple[str, ...]]


# --------------------------
# Enumerations
# --------------------------

class FlowDirection(Enum):
    UNDEFINED = auto()
    IN = auto()
    OUT = auto()

    @staticmethod
    def from_keyword(keyword: Optional[str]) -> "FlowDirection":
        """
        Map an input keyword ("in", "out", "", None) to a flow direction.
        Raises ValueError for anything else.
        """
        if not keyword:
            return FlowDirection.UNDEFINED
        k = keyword.strip().lower()
        if k == "in":
            return FlowDirection.IN
        if k == "out":
            return FlowDirection.OUT
        if k == "undefined":
            return FlowDirection.UNDEFINED
        raise ValueError(f"Unknown flow direction '{keyword}'")


class WrapperClass(Enum):
    """
    How a type occurrence must be marshaled. This is a closed set: the
    permutation engine and the body synthesizer dispatch on it through tables
    that must cover every member they handle.
    """
    NONE = auto()
    ARRAY = auto()
    GENERIC_OBJECT = auto()
    REFERENCE = auto()
    POINTER = auto()
    STRING_RETURN = auto()
    GENERIC_RETURN = auto()
    UNCHECKED_NUMERIC = auto()


# Parameters of these classes take the address of a managed value.
PINNED_CLASSES = frozenset({
    WrapperClass.POINTER,
    WrapperClass.ARRAY,
    WrapperClass.REFERENCE,
    WrapperClass.GENERIC_OBJECT,
})

# Parameters of these classes admit more than one host representation.
AMBIGUOUS_CLASSES = frozenset({
    WrapperClass.ARRAY,
    WrapperClass.REFERENCE,
    WrapperClass.GENERIC_OBJECT,
})


# --------------------------
# Type model
# --------------------------

@dataclass
class TypeDescriptor:
    """
    One type occurrence (a return value or a parameter).

    `name` is the current host-language type name. `portable_name` is the
    cross-language-portable equivalent looked up by the type map; None means
    the type is its own portable equivalent.
    """
    name: str
    is_pointer: bool = False
    array_rank: int = 0
    wrapper_class: WrapperClass = WrapperClass.NONE
    portable_name: Optional[str] = None

    def __post_init__(self) -> None:
        self.name = (self.name or "").strip()
        if self.array_rank < 0:
            raise ValueError(f"array_rank must be >= 0 (got {self.array_rank})")

    @property
    def portable(self) -> str:
        return self.portable_name or self.name

    @property
    def is_portable(self) -> bool:
        return self.portable == self.name

    @property
    def is_void(self) -> bool:
        return self.name.lower() in ("void", "system.void") and not self.is_pointer

    @property
    def spelling(self) -> str:
        """
        Host-language spelling: pointers render as `T*` (native arrays are
        pointers too), managed arrays as `T[]` / `T[,]`.
        """
        s = self.name
        if self.array_rank > 0 and not self.is_pointer:
            s += "[" + "," * (self.array_rank - 1) + "]"
        if self.is_pointer:
            s += "*"
        return s

    def retype(self, name: str) -> None:
        """Replace the host type name. The new name is its own portable equivalent."""
        self.name = name
        self.portable_name = None

    def copy(self) -> "TypeDescriptor":
        return replace(self)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "spelling": self.spelling,
            "is_pointer": self.is_pointer,
            "array_rank": self.array_rank,
            "wrapper_class": self.wrapper_class.name,
            "portable_name": self.portable,
        }


# --------------------------
# Parameter model
# --------------------------

@dataclass
class Parameter:
    name: str
    type: TypeDescriptor
    flow: FlowDirection = FlowDirection.UNDEFINED
    is_reference: bool = False

    @property
    def is_array(self) -> bool:
        return self.type.array_rank > 0

    @property
    def is_pointer(self) -> bool:
        return self.type.is_pointer

    @property
    def wrapper_class(self) -> WrapperClass:
        return self.type.wrapper_class

    @property
    def needs_pinning(self) -> bool:
        return self.type.wrapper_class in PINNED_CLASSES

    @property
    def is_portable(self) -> bool:
        return self.type.is_portable

    @property
    def spelling(self) -> str:
        """
        Type token used in signatures. `ref` and `out` share one token because
        the host language cannot overload on that difference.
        """
        if self.is_reference and not self.type.is_pointer:
            return f"ref {self.type.spelling}"
        return self.type.spelling

    def declaration(self) -> str:
        """Parameter as written in a declaration, e.g. `[OutAttribute] UInt32* textures`."""
        if self.is_reference and not self.type.is_pointer:
            keyword = "out" if self.flow == FlowDirection.OUT else "ref"
            return f"{keyword} {self.type.spelling} {self.name}"
        if self.flow == FlowDirection.OUT and (self.type.is_pointer or self.is_array):
            return f"[OutAttribute] {self.type.spelling} {self.name}"
        return f"{self.type.spelling} {self.name}"

    def copy(self) -> "Parameter":
        return Parameter(
            name=self.name,
            type=self.type.copy(),
            flow=self.flow,
            is_reference=self.is_reference,
        )

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "type": self.type.to_dict(),
            "flow": self.flow.name,
            "is_reference": self.is_reference,
            "is_array": self.is_array,
            "needs_pinning": self.needs_pinning,
            "declaration": self.declaration(),
        }


# --------------------------
# Function models
# --------------------------

def extension_for(name: str, suffixes: Sequence[str] = VENDOR_SUFFIXES) -> Optional[str]:
    """
    Extension tag of a function name: the vendor suffix it ends with, or "Core".
    Returns None for an empty name.
    """
    if not name:
        return None
    for suffix in suffixes:
        if name.endswith(suffix) and len(name) > len(suffix):
            return suffix
    return CORE_EXTENSION


@dataclass
class NativeFunction:
    """
    A native entry point as described by the API specification.

    `name` is always stored trimmed; once a non-empty name has been set,
    assigning an empty one is ignored.
    """
    name: str
    return_type: TypeDescriptor = field(default_factory=lambda: TypeDescriptor("void"))
    parameters: List[Parameter] = field(default_factory=list)
    category: str = ""
    version: str = ""

    def __setattr__(self, key, value) -> None:
        if key == "name":
            value = (value or "").strip()
            if not value and getattr(self, "name", ""):
                return
        super().__setattr__(key, value)

    # ---- Derived properties ----

    @property
    def needs_wrapper(self) -> bool:
        if self.return_type.wrapper_class != WrapperClass.NONE:
            return True
        return any(p.wrapper_class != WrapperClass.NONE for p in self.parameters)

    @property
    def requires_unsafe(self) -> bool:
        if self.return_type.is_pointer:
            return True
        return any(p.is_pointer for p in self.parameters)

    @property
    def is_portable(self) -> bool:
        if self.requires_unsafe:
            return False
        if not self.return_type.is_portable:
            return False
        return all(p.is_portable for p in self.parameters)

    @property
    def extension(self) -> Optional[str]:
        return extension_for(self.name)

    @property
    def signature(self) -> Signature:
        return (self.name, tuple(p.spelling for p in self.parameters))

    @property
    def signature_key(self) -> str:
        return f"{self.name}({', '.join(p.spelling for p in self.parameters)})"

    # ---- Strings ----

    def parameter_list(self) -> str:
        return "(" + ", ".join(p.declaration() for p in self.parameters) + ")"

    def call_string(self, naming: "NamingConvention", args: Optional[Sequence[str]] = None) -> str:
        """
        Call expression targeting the native entry point, e.g.
        `Delegates.glGenTextures(n, textures_ptr)`.
        """
        if args is None:
            args = [p.name for p in self.parameters]
        return f"{naming.delegates_class}.{naming.function_prefix}{self.name}({', '.join(args)})"

    def declaration(self) -> str:
        unsafe = "unsafe " if self.requires_unsafe else ""
        return f"{unsafe}{self.return_type.spelling} {self.name}{self.parameter_list()}"

    def delegate_declaration(self) -> str:
        unsafe = "unsafe " if self.requires_unsafe else ""
        return f"{unsafe}delegate {self.return_type.spelling} {self.name}{self.parameter_list()}"

    def __str__(self) -> str:
        return self.delegate_declaration()

    # ---- Copies ----

    def copy(self) -> "NativeFunction":
        return NativeFunction(
            name=self.name,
            return_type=self.return_type.copy(),
            parameters=[p.copy() for p in self.parameters],
            category=self.category,
            version=self.version,
        )

    def portable_copy(self) -> "NativeFunction":
        """Copy with every parameter and the return type rewritten to its portable equivalent."""
        f = self.copy()
        for p in f.parameters:
            p.type.retype(p.type.portable)
        f.return_type.retype(f.return_type.portable)
        return f

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "category": self.category,
            "version": self.version,
            "extension": self.extension,
            "return_type": self.return_type.to_dict(),
            "parameters": [p.to_dict() for p in self.parameters],
            "needs_wrapper": self.needs_wrapper,
            "unsafe": self.requires_unsafe,
            "portable": self.is_portable,
            "declaration": self.delegate_declaration(),
        }


class FunctionBody(list):
    """
    Ordered statement lines of a generated function. `add` applies the current
    indentation level, which `indent`/`unindent` move.
    """

    INDENT = "    "

    def __init__(self, lines: Iterable[str] = ()) -> None:
        super().__init__(lines)
        self._level = 0

    def indent(self) -> None:
        self._level += 1

    def unindent(self) -> None:
        if self._level > 0:
            self._level -= 1

    def add(self, line: str) -> None:
        self.append(self.INDENT * self._level + line)

    def add_range(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.add(line)

    def copy(self) -> "FunctionBody":
        return FunctionBody(self)

    def to_text(self) -> str:
        return "\n".join(self)


@dataclass
class GeneratedFunction(NativeFunction):
    """
    A managed overload wrapping a native entry point. `native` is the
    (annotated) entry point the body calls into; it is never mutated.
    `pins_parameters` is set when the body pins parameters rather than
    forwarding them.
    """
    body: FunctionBody = field(default_factory=FunctionBody)
    native: Optional[NativeFunction] = field(default=None, repr=False, compare=False)
    pins_parameters: bool = field(default=False, compare=False)

    @classmethod
    def from_native(cls, native: NativeFunction) -> "GeneratedFunction":
        src = native.copy()
        return cls(
            name=src.name,
            return_type=src.return_type,
            parameters=src.parameters,
            category=src.category,
            version=src.version,
            native=native,
        )

    @property
    def target(self) -> NativeFunction:
        return self.native if self.native is not None else self

    def copy(self) -> "GeneratedFunction":
        return GeneratedFunction(
            name=self.name,
            return_type=self.return_type.copy(),
            parameters=[p.copy() for p in self.parameters],
            category=self.category,
            version=self.version,
            body=self.body.copy(),
            native=self.native,
            pins_parameters=self.pins_parameters,
        )

    def declaration(self) -> str:
        unsafe = "unsafe " if self.requires_unsafe else ""
        return f"public static {unsafe}{self.return_type.spelling} {self.name}{self.parameter_list()}"

    def to_dict(self) -> Dict:
        d = super().to_dict()
        d["declaration"] = self.declaration()
        d["signature"] = self.signature_key
        d["body"] = list(self.body)
        return d


class NativeFunctionCollection(Dict[str, NativeFunction]):
    """
    Native functions keyed by name. The first definition of a name wins; later
    ones are reported as specification errors and ignored.
    """

    def add(self, function: NativeFunction) -> bool:
        if function.name in self:
            logger.warning(
                "Spec error: function %s redefined, ignoring second definition.", function.name
            )
            return False
        self[function.name] = function
        return True

    def merge(self, other: Iterable[NativeFunction]) -> int:
        """Add every function of `other`; returns how many were accepted."""
        return sum(1 for f in other if self.add(f))


# --------------------------
# Generation context
# --------------------------

@dataclass
class GenerationContext:
    """
    Parameters for a single generation run.

    Paths are absolute. Emitters should rely on these rather than guessing.
    """
    output_dir: Path
    templates_dir: Optional[Path]
    naming: "NamingConvention"
    dry_run: bool = False

    def to_dict(self) -> Dict:
        return {
            "output_dir": str(self.output_dir),
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "naming": self.naming.to_dict(),
            "dry_run": self.dry_run,
        }


# --------------------------
# Template convenience helpers
# --------------------------

def group_by_extension(functions: Iterable[NativeFunction]) -> Dict[str, List[NativeFunction]]:
    """Group functions by extension tag, keeping first-seen order; Core comes first."""
    groups: Dict[str, List[NativeFunction]] = {}
    for f in functions:
        groups.setdefault(f.extension or CORE_EXTENSION, []).append(f)
    if CORE_EXTENSION in groups:
        groups = {CORE_EXTENSION: groups.pop(CORE_EXTENSION), **groups}
    return groups


def build_template_context(
    naming: "NamingConvention",
    natives: Iterable[NativeFunction],
    wrappers: Iterable[GeneratedFunction],
) -> Dict:
    """
    Produce a flattened context dict to pass to Jinja2 templates.
    Keeps the surface small and stable across templates.
    """
    return {
        "naming": naming.to_dict(),
        "natives": [f.to_dict() for f in natives],
        "extensions": {
            ext: [w.to_dict() for w in ws]
            for ext, ws in group_by_extension(wrappers).items()
        },
    }


__all__ = [
    "VENDOR_SUFFIXES",
    "CORE_EXTENSION",
    "Signature",
    "FlowDirection",
    "WrapperClass",
    "PINNED_CLASSES",
    "AMBIGUOUS_CLASSES",
    "TypeDescriptor",
    "Parameter",
    "NativeFunction",
    "FunctionBody",
    "GeneratedFunction",
    "NativeFunctionCollection",
    "GenerationContext",
    "extension_for",
    "group_by_extension",
    "build_template_context",
]
