#!/usr/bin/env python3
"""
Wrapper classification for return values and parameters.

Classification is an ordered table of rules evaluated first-match-wins:

1. Per-function special cases (e.g. the 16-bit stipple pattern of
   `LineStipple` is passed unchecked). They override the generic rules for one
   function/parameter pair, so they are evaluated first.
2. A string return becomes `STRING_RETURN` and is retyped to the opaque
   native address type.
3. A pointer to `void` with no array rank becomes `GENERIC_RETURN` (return
   position) or `GENERIC_OBJECT` (parameter position), retyped to the opaque
   native address type.
   A returned managed object is a `GENERIC_RETURN` as well.
4. A pointer with an array rank is an `ARRAY` parameter.
5. A reference without an array rank is a `REFERENCE` parameter.
6. Any other pointer is a `POINTER` parameter.
7. Everything else is `NONE`.

Classification never mutates its input: it returns the wrapper class together
with a (possibly retyped) copy of the type descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, FrozenSet, Optional, Sequence, Tuple
import logging

from .models import NativeFunction, TypeDescriptor, WrapperClass
from .type_mapping import NamingConvention, TypeMap

logger = logging.getLogger(__name__)


class Position(Enum):
    RETURN = auto()
    PARAMETER = auto()


@dataclass(frozen=True)
class Occurrence:
    """Everything a rule may look at."""
    type: TypeDescriptor
    position: Position
    is_reference: bool = False
    function_name: str = ""


@dataclass(frozen=True)
class Classification:
    wrapper_class: WrapperClass
    type: TypeDescriptor
    rule: Optional[str] = None


Rewrite = Callable[[TypeDescriptor, NamingConvention], None]


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    positions: FrozenSet[Position]
    predicate: Callable[[Occurrence], bool]
    wrapper_class: WrapperClass
    rewrite: Optional[Rewrite] = None

    def matches(self, occ: Occurrence) -> bool:
        return occ.position in self.positions and self.predicate(occ)


_RETURN = frozenset({Position.RETURN})
_PARAMETER = frozenset({Position.PARAMETER})


# --------------------------
# Predicates and rewrites
# --------------------------

def _is_string_name(name: str) -> bool:
    return "string" in name.lower()


def _is_void_pointer(occ: Occurrence) -> bool:
    t = occ.type
    return t.is_pointer and t.array_rank == 0 and t.name.lower() == "void"


def _to_native_address(t: TypeDescriptor, naming: NamingConvention) -> None:
    t.retype(naming.native_address_type)
    t.is_pointer = False


def _to_string_array(t: TypeDescriptor, naming: NamingConvention) -> None:
    t.array_rank = 1


# --------------------------
# Rule tables
# --------------------------

SPECIAL_CASES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        name="line-stipple-unchecked",
        positions=_PARAMETER,
        predicate=lambda o: o.type.name == "UInt16" and "LineStipple" in o.function_name,
        wrapper_class=WrapperClass.UNCHECKED_NUMERIC,
    ),
    ClassificationRule(
        name="shader-source-string-array",
        positions=_PARAMETER,
        predicate=lambda o: "ShaderSource" in o.function_name and _is_string_name(o.type.name),
        wrapper_class=WrapperClass.NONE,
        rewrite=_to_string_array,
    ),
)

GENERIC_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        name="string-return",
        positions=_RETURN,
        predicate=lambda o: _is_string_name(o.type.name),
        wrapper_class=WrapperClass.STRING_RETURN,
        rewrite=_to_native_address,
    ),
    ClassificationRule(
        name="generic-return",
        positions=_RETURN,
        predicate=_is_void_pointer,
        wrapper_class=WrapperClass.GENERIC_RETURN,
        rewrite=_to_native_address,
    ),
    ClassificationRule(
        name="object-return",
        positions=_RETURN,
        predicate=lambda o: "object" in o.type.name.lower(),
        wrapper_class=WrapperClass.GENERIC_RETURN,
        rewrite=_to_native_address,
    ),
    ClassificationRule(
        name="generic-object",
        positions=_PARAMETER,
        predicate=_is_void_pointer,
        wrapper_class=WrapperClass.GENERIC_OBJECT,
        rewrite=_to_native_address,
    ),
    ClassificationRule(
        name="array",
        positions=_PARAMETER,
        predicate=lambda o: o.type.array_rank > 0 and o.type.is_pointer,
        wrapper_class=WrapperClass.ARRAY,
    ),
    ClassificationRule(
        name="reference",
        positions=_PARAMETER,
        predicate=lambda o: o.is_reference and o.type.array_rank == 0,
        wrapper_class=WrapperClass.REFERENCE,
    ),
    ClassificationRule(
        name="pointer",
        positions=_PARAMETER,
        predicate=lambda o: o.type.is_pointer and o.type.array_rank == 0 and not o.is_reference,
        wrapper_class=WrapperClass.POINTER,
    ),
)

DEFAULT_RULES: Tuple[ClassificationRule, ...] = SPECIAL_CASES + GENERIC_RULES

_SPECIAL_CASE_NAMES = frozenset(r.name for r in SPECIAL_CASES)


# --------------------------
# Classifier
# --------------------------

@dataclass
class Classifier:
    """
    Applies an ordered rule table. The rule list is public so that callers can
    audit or extend it (e.g. prepend project-specific special cases).
    """
    naming: NamingConvention = field(default_factory=NamingConvention)
    rules: Sequence[ClassificationRule] = DEFAULT_RULES

    def classify(
        self,
        t: TypeDescriptor,
        position: Position,
        *,
        is_reference: bool = False,
        function_name: str = "",
    ) -> Classification:
        occ = Occurrence(type=t, position=position, is_reference=is_reference, function_name=function_name)
        for rule in self.rules:
            if rule.matches(occ):
                out = t.copy()
                if rule.rewrite is not None:
                    rule.rewrite(out, self.naming)
                out.wrapper_class = rule.wrapper_class
                return Classification(wrapper_class=rule.wrapper_class, type=out, rule=rule.name)
        out = t.copy()
        out.wrapper_class = WrapperClass.NONE
        return Classification(wrapper_class=WrapperClass.NONE, type=out)

    def annotate(self, native: NativeFunction, type_map: TypeMap) -> NativeFunction:
        """
        Translation phase: map every type occurrence to its host type and attach
        its wrapper classification. Returns an annotated copy; `native` is left
        untouched. Return types are normalized to their portable equivalent
        because the host language cannot overload on return type.
        """
        f = native.copy()

        ret = self.classify(type_map.translate(f.return_type), Position.RETURN, function_name=f.name)
        f.return_type = ret.type
        if not f.return_type.is_portable:
            f.return_type.retype(f.return_type.portable)

        for p in f.parameters:
            c = self.classify(
                type_map.translate(p.type),
                Position.PARAMETER,
                is_reference=p.is_reference,
                function_name=f.name,
            )
            p.type = c.type
            if c.rule in _SPECIAL_CASE_NAMES:
                logger.debug("%s(%s): special case '%s' applied", f.name, p.name, c.rule)

        return f


_default_classifier = Classifier()


def classify(
    t: TypeDescriptor,
    position: Position = Position.PARAMETER,
    *,
    is_reference: bool = False,
    function_name: str = "",
) -> WrapperClass:
    """Classify a type occurrence with the default rule table."""
    return _default_classifier.classify(
        t, position, is_reference=is_reference, function_name=function_name
    ).wrapper_class


__all__ = [
    "Position",
    "Occurrence",
    "Classification",
    "ClassificationRule",
    "SPECIAL_CASES",
    "GENERIC_RULES",
    "DEFAULT_RULES",
    "Classifier",
    "classify",
]
