#!/usr/bin/env python3
"""
Statement bodies for generated wrappers.

Every parameter that needs its address taken is pinned with one of two
disciplines:

- PINNED_HANDLE (generic objects): an explicit GCHandle is allocated before
  the call and freed in a `finally` block, so it is released on every exit path.
- SCOPED_ADDRESS (arrays, references, pointers): a `fixed` statement binds a
  stable address for the duration of the nested scope.

Scopes nest as:

    unsafe
    {
        fixed (T* a_ptr = a)
        fixed (U* b_ptr = &b)
        {
            GCHandle c_ptr = GCHandle.Alloc(c, GCHandleType.Pinned);
            try
            {
                R retval = Delegates.glF(a_ptr, b_ptr, c_ptr.AddrOfPinnedObject());
                b = *b_ptr;
                return retval;
            }
            finally
            {
                c_ptr.Free();
            }
        }
    }

Call-site arguments whose declared type differs from the native entry point's
parameter type are cast to the native type; unchecked numerics wrap that cast
in `unchecked(...)`.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Dict, List, Mapping, Optional
import logging

from .errors import UnknownWrapperClassError
from .models import (
    FlowDirection,
    FunctionBody,
    GeneratedFunction,
    NativeFunction,
    Parameter,
    TypeDescriptor,
    WrapperClass,
)
from .type_mapping import NamingConvention

logger = logging.getLogger(__name__)

GC_HANDLE = "System.Runtime.InteropServices.GCHandle"
GC_HANDLE_TYPE = "System.Runtime.InteropServices.GCHandleType"
PTR_TO_STRING = "System.Runtime.InteropServices.Marshal.PtrToStringAnsi"


class PinningDiscipline(Enum):
    PINNED_HANDLE = auto()
    SCOPED_ADDRESS = auto()


DEFAULT_DISCIPLINES: Dict[WrapperClass, PinningDiscipline] = {
    WrapperClass.GENERIC_OBJECT: PinningDiscipline.PINNED_HANDLE,
    WrapperClass.ARRAY: PinningDiscipline.SCOPED_ADDRESS,
    WrapperClass.POINTER: PinningDiscipline.SCOPED_ADDRESS,
    WrapperClass.REFERENCE: PinningDiscipline.SCOPED_ADDRESS,
}


def _declared_type(t: TypeDescriptor, want_portable: bool) -> TypeDescriptor:
    if not want_portable or t.is_portable:
        return t
    out = t.copy()
    out.retype(t.portable)
    return out


class BodySynthesizer:
    """
    Builds statement bodies for generated functions. Deterministic: the output
    depends only on the function's parameter representations and the naming
    convention.
    """

    def __init__(
        self,
        naming: Optional[NamingConvention] = None,
        disciplines: Optional[Mapping[WrapperClass, PinningDiscipline]] = None,
    ) -> None:
        self.naming = naming or NamingConvention()
        self.disciplines = dict(DEFAULT_DISCIPLINES if disciplines is None else disciplines)

    # ---- Public API ----

    def forward_body(self, function: GeneratedFunction, want_portable: bool = False) -> FunctionBody:
        """
        Single statement that calls the native entry point directly, e.g.
        `return Delegates.glIsEnabled(cap);`. Wrapped in `unsafe { ... }` when
        either the wrapper or the native entry point uses raw pointers.
        """
        native = function.target
        args = [
            self._argument(p, self._native_parameter(native, i), want_portable)
            for i, p in enumerate(function.parameters)
        ]
        statement = self._return_statement(function, native.call_string(self.naming, args))
        if function.requires_unsafe or native.requires_unsafe:
            statement = f"unsafe {{ {statement} }}"
        return FunctionBody([statement])

    def emit_body(self, function: GeneratedFunction, want_portable: bool = False) -> FunctionBody:
        """
        Full body with pinning, the native call, out-parameter assignment and
        guaranteed cleanup. Raises UnknownWrapperClassError when a parameter
        needs pinning but no discipline handles its wrapper class.
        """
        native = function.target
        handle_statements: List[str] = []
        fixed_statements: List[str] = []
        assign_statements: List[str] = []
        handles: List[str] = []
        args: List[str] = []

        for i, p in enumerate(function.parameters):
            np = self._native_parameter(native, i)
            # Raw pointers already are stable addresses.
            if not p.needs_pinning or p.is_pointer:
                args.append(self._argument(p, np, want_portable))
                continue

            discipline = self.disciplines.get(p.wrapper_class)
            declared = _declared_type(p.type, want_portable)
            ptr = f"{p.name}_ptr"

            if discipline is PinningDiscipline.PINNED_HANDLE:
                handle_statements.append(
                    f"{GC_HANDLE} {ptr} = {GC_HANDLE}.Alloc({p.name}, {GC_HANDLE_TYPE}.Pinned);"
                )
                if p.flow == FlowDirection.OUT:
                    assign_statements.append(f"{p.name} = ({declared.name}){ptr}.Target;")
                args.append(self._cast(f"{ptr}.AddrOfPinnedObject()", self.naming.native_address_type, np))
                handles.append(ptr)
            elif discipline is PinningDiscipline.SCOPED_ADDRESS:
                source = p.name if p.is_array else f"&{p.name}"
                fixed_statements.append(f"fixed ({declared.name}* {ptr} = {source})")
                # Pinned managed arrays are written in place.
                if p.flow == FlowDirection.OUT and not p.is_array:
                    assign_statements.append(f"{p.name} = *{ptr};")
                args.append(self._cast(ptr, f"{declared.name}*", np))
            else:
                raise UnknownWrapperClassError(function.name, p.name, p.wrapper_class)

        call = self._call_expression(function, native.call_string(self.naming, args))
        returns = not function.return_type.is_void

        body = FunctionBody()
        body.add("unsafe")
        body.add("{")
        body.indent()

        if fixed_statements:
            body.add_range(fixed_statements)
            body.add("{")
            body.indent()

        if handle_statements:
            body.add_range(handle_statements)
            body.add("try")
            body.add("{")
            body.indent()

        if returns:
            body.add(f"{function.return_type.spelling} retval = {call};")
        else:
            body.add(f"{call};")

        body.add_range(assign_statements)

        if returns:
            body.add("return retval;")

        if handle_statements:
            body.unindent()
            body.add("}")
            body.add("finally")
            body.add("{")
            body.indent()
            for handle in handles:
                body.add(f"{handle}.Free();")
            body.unindent()
            body.add("}")

        if fixed_statements:
            body.unindent()
            body.add("}")

        body.unindent()
        body.add("}")

        logger.debug(
            "%s: body with %d fixed scope(s), %d pinned handle(s)",
            function.signature_key, len(fixed_statements), len(handles),
        )
        return body

    # ---- Internals ----

    @staticmethod
    def _native_parameter(native: NativeFunction, index: int) -> Optional[Parameter]:
        if index < len(native.parameters):
            return native.parameters[index]
        return None

    def _argument(self, p: Parameter, np: Optional[Parameter], want_portable: bool) -> str:
        """Call-site expression for a parameter that is passed without pinning."""
        declared = _declared_type(p.type, want_portable)
        expr = self._cast(p.name, declared.spelling, np)
        if expr != p.name and p.wrapper_class == WrapperClass.UNCHECKED_NUMERIC:
            return f"unchecked({expr})"
        return expr

    @staticmethod
    def _cast(expr: str, declared_spelling: str, np: Optional[Parameter]) -> str:
        if np is None or np.type.spelling == declared_spelling:
            return expr
        return f"({np.type.spelling}){expr}"

    def _call_expression(self, function: GeneratedFunction, call: str) -> str:
        if function.return_type.wrapper_class == WrapperClass.STRING_RETURN:
            return f"{PTR_TO_STRING}({call})"
        return call

    def _return_statement(self, function: GeneratedFunction, call: str) -> str:
        call = self._call_expression(function, call)
        if function.return_type.is_void:
            return f"{call};"
        return f"return {call};"


__all__ = [
    "GC_HANDLE",
    "GC_HANDLE_TYPE",
    "PTR_TO_STRING",
    "PinningDiscipline",
    "DEFAULT_DISCIPLINES",
    "BodySynthesizer",
]
