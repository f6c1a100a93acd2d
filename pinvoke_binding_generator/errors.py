#!/usr/bin/env python3
"""
Exception types raised by the P/Invoke binding generator.

Specification conflicts (duplicate native functions) and signature collisions
in the wrapper registry are not errors: they are logged and the later entry is
dropped. Only malformed input and internal-consistency faults raise.
"""

from __future__ import annotations

from typing import Optional


class BindingGeneratorError(Exception):
    """Base class for all generator errors."""


class SpecificationError(BindingGeneratorError):
    """A native function descriptor could not be built from its input."""

    def __init__(self, message: str, function_name: Optional[str] = None) -> None:
        self.function_name = function_name
        if function_name:
            message = f"{function_name}: {message}"
        super().__init__(message)


class WrapperSynthesisError(BindingGeneratorError):
    """Wrapper synthesis for a single native function failed."""

    def __init__(self, message: str, function_name: Optional[str] = None) -> None:
        self.function_name = function_name
        super().__init__(message)


class UnknownWrapperClassError(WrapperSynthesisError):
    """
    A parameter needs pinning but no pinning discipline handles its wrapper class.

    This means the classifier and the body synthesizer disagree about the set of
    wrapper classes, so synthesis for the function is aborted.
    """

    def __init__(self, function_name: str, parameter_name: str, wrapper_class: object) -> None:
        self.parameter_name = parameter_name
        self.wrapper_class = wrapper_class
        super().__init__(
            f"Unknown parameter type: {function_name}({parameter_name}) is classified as "
            f"{getattr(wrapper_class, 'name', wrapper_class)}, which has no pinning discipline",
            function_name=function_name,
        )


__all__ = [
    "BindingGeneratorError",
    "SpecificationError",
    "WrapperSynthesisError",
    "UnknownWrapperClassError",
]
