#!/usr/bin/env python3
"""
Enumerate the managed overloads of a native function.

Parameters whose marshaling is ambiguous (arrays, references and generic
objects) can be exposed in two host representations each. The engine walks the
parameters left to right and, at every ambiguous index, branches into both
representations, so a function with k ambiguous parameters yields 2**k
overloads. Example: "void f(IntPtr p, IntPtr q)" where p and q point to
untyped data needs

    void f(IntPtr p, IntPtr q)
    void f(IntPtr p, object q)
    void f(object p, IntPtr q)
    void f(object p, object q)

Every branch works on its own copy of the function, and the parameter index is
passed down the recursion explicitly, so the engine holds no state between
calls and may be used from several translators at once.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Tuple
import logging

from .body_synthesizer import BodySynthesizer
from .errors import WrapperSynthesisError
from .models import (
    AMBIGUOUS_CLASSES,
    FlowDirection,
    GeneratedFunction,
    NativeFunction,
    Parameter,
    WrapperClass,
)
from .type_mapping import NamingConvention

logger = logging.getLogger(__name__)

Representation = Callable[[Parameter, NamingConvention], None]


# --------------------------
# Representations
# --------------------------

def as_array(p: Parameter, naming: NamingConvention) -> None:
    """Managed array, pinned with `fixed`: `T[] p`."""
    p.is_reference = False
    p.type.is_pointer = False
    if p.type.array_rank == 0:
        p.type.array_rank = 1
    p.type.wrapper_class = WrapperClass.ARRAY


def as_reference(p: Parameter, naming: NamingConvention) -> None:
    """Single element passed by reference: `ref T p` / `out T p`."""
    p.is_reference = True
    p.type.is_pointer = False
    p.type.array_rank = 0
    p.type.wrapper_class = WrapperClass.REFERENCE


def as_object(p: Parameter, naming: NamingConvention) -> None:
    """Any managed object, pinned through a GCHandle: `object p`."""
    p.is_reference = False
    p.type.retype(naming.object_type)
    p.type.is_pointer = False
    p.type.array_rank = 0
    p.type.wrapper_class = WrapperClass.GENERIC_OBJECT
    p.flow = FlowDirection.UNDEFINED


def as_address(p: Parameter, naming: NamingConvention) -> None:
    """Caller-supplied native address, passed through unchanged: `IntPtr p`."""
    p.is_reference = False
    p.type.retype(naming.native_address_type)
    p.type.is_pointer = False
    p.type.array_rank = 0
    p.type.wrapper_class = WrapperClass.NONE


DEFAULT_REPRESENTATIONS: Dict[WrapperClass, Tuple[Representation, ...]] = {
    WrapperClass.ARRAY: (as_array, as_reference),
    WrapperClass.GENERIC_OBJECT: (as_address, as_object),
    WrapperClass.REFERENCE: (as_address, as_reference),
}


# --------------------------
# Engine
# --------------------------

class PermutationEngine:
    """
    Usage:
        engine = PermutationEngine(naming)
        overloads = engine.synthesize(annotated_native)
    """

    def __init__(
        self,
        naming: Optional[NamingConvention] = None,
        synthesizer: Optional[BodySynthesizer] = None,
        representations: Optional[Mapping[WrapperClass, Tuple[Representation, ...]]] = None,
    ) -> None:
        self.naming = naming or NamingConvention()
        self.synthesizer = synthesizer or BodySynthesizer(self.naming)
        self.representations = dict(DEFAULT_REPRESENTATIONS if representations is None else representations)

    # ---- Public API ----

    def synthesize(self, native: NativeFunction) -> List[GeneratedFunction]:
        """
        All overloads of an annotated native function, each with its body.
        `native` is never mutated.
        """
        if not native.needs_wrapper:
            f = GeneratedFunction.from_native(native)
            f.body = self.synthesizer.forward_body(f)
            return [f]

        f, complete = self._wrap_return_type(native)
        if complete:
            return [f]

        wrappers = self._wrap_parameters(f)
        logger.debug("%s: %d overload(s)", native.name, len(wrappers))
        return wrappers

    # ---- Internals ----

    def _wrap_return_type(self, native: NativeFunction) -> Tuple[GeneratedFunction, bool]:
        """
        Returns the function with its return type rewritten, and whether it is
        already complete (string returns take no further wrapping).
        """
        f = GeneratedFunction.from_native(native)
        wc = f.return_type.wrapper_class

        if wc == WrapperClass.STRING_RETURN:
            # The string belongs to the native side; it is copied out with
            # PtrToStringAnsi rather than released by the managed runtime.
            f.return_type.retype(self.naming.string_type)
            f.body = self.synthesizer.forward_body(f)
            return f, True

        if wc == WrapperClass.GENERIC_RETURN:
            # Callers marshal the returned address themselves.
            f.return_type.retype(self.naming.native_address_type)
            f.return_type.is_pointer = False

        return f, False

    def _wrap_parameters(self, function: GeneratedFunction) -> List[GeneratedFunction]:
        if any(p.wrapper_class == WrapperClass.POINTER for p in function.parameters):
            # Raw pointers are never given alternate representations.
            function.body = self.synthesizer.forward_body(function)
            return [function]

        if all(p.wrapper_class == WrapperClass.NONE for p in function.parameters):
            function.body = self.synthesizer.forward_body(function)
            return [function]

        # A lone reference parameter is handled by the per-index recursion too.
        return self._permute(function, 0)

    def _permute(self, function: GeneratedFunction, index: int) -> List[GeneratedFunction]:
        if index >= len(function.parameters):
            if any(p.needs_pinning for p in function.parameters):
                function.body = self.synthesizer.emit_body(function)
                function.pins_parameters = True
            else:
                function.body = self.synthesizer.forward_body(function)
            return [function]

        p = function.parameters[index]
        if p.wrapper_class not in AMBIGUOUS_CLASSES:
            return self._permute(function, index + 1)

        branches = self.representations.get(p.wrapper_class)
        if not branches:
            raise WrapperSynthesisError(
                f"No representations for {p.wrapper_class.name} parameter '{p.name}'",
                function_name=function.name,
            )

        results: List[GeneratedFunction] = []
        for represent in branches:
            variant = function.copy()
            represent(variant.parameters[index], self.naming)
            results.extend(self._permute(variant, index + 1))
        return results


__all__ = [
    "Representation",
    "as_array",
    "as_reference",
    "as_object",
    "as_address",
    "DEFAULT_REPRESENTATIONS",
    "PermutationEngine",
]
