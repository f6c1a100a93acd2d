#!/usr/bin/env python3
"""
Wrapper registry and portable-counterpart derivation.

The registry maps a signature (name plus ordered parameter type spellings) to
the generated function that first claimed it. Insertion order is kept so the
emitted source is stable from run to run. A later wrapper with a colliding
signature is dropped, never overwritten.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional
import logging

from .body_synthesizer import BodySynthesizer
from .models import FunctionBody, GeneratedFunction, Signature

logger = logging.getLogger(__name__)


class WrapperRegistry:
    """
    Usage:
        registry = WrapperRegistry()
        registry.add_checked(wrapper)      # False on a signature collision
        for w in registry: ...
    """

    def __init__(self) -> None:
        self._wrappers: Dict[Signature, GeneratedFunction] = {}

    def add_checked(self, function: GeneratedFunction) -> bool:
        sig = function.signature
        if sig in self._wrappers:
            logger.debug("Wrapper %s already registered; dropping duplicate", function.signature_key)
            return False
        self._wrappers[sig] = function
        return True

    register = add_checked

    def get(self, signature: Signature) -> Optional[GeneratedFunction]:
        return self._wrappers.get(signature)

    def wrappers(self) -> List[GeneratedFunction]:
        return list(self._wrappers.values())

    def merge(self, other: "WrapperRegistry") -> int:
        """Register every wrapper of `other` under the same collision rule; returns how many were added."""
        return sum(1 for w in other if self.add_checked(w))

    def clear(self) -> None:
        self._wrappers.clear()

    def __len__(self) -> int:
        return len(self._wrappers)

    def __iter__(self) -> Iterator[GeneratedFunction]:
        return iter(list(self._wrappers.values()))

    def __contains__(self, item) -> bool:
        if isinstance(item, GeneratedFunction):
            return item.signature in self._wrappers
        return item in self._wrappers

    def to_dict(self) -> Dict:
        return {
            "count": len(self._wrappers),
            "wrappers": [
                {"signature": w.signature_key, "portable": w.is_portable, "extension": w.extension}
                for w in self._wrappers.values()
            ],
        }


def derive_portable(variant: GeneratedFunction, synthesizer: BodySynthesizer) -> Optional[GeneratedFunction]:
    """
    Portable counterpart of a registered variant: every parameter and the
    return type take their portable equivalent. Returns None when no parameter
    type changes, since the counterpart would duplicate the variant.
    """
    portable = variant.copy()
    portable.body = FunctionBody()

    # Same body shape as the variant, with pinned parameters declared as their
    # portable equivalent. Forwarded parameters stay forwarded.
    if variant.pins_parameters:
        body = synthesizer.emit_body(variant, want_portable=True)
    else:
        body = synthesizer.forward_body(variant, want_portable=True)

    changed = False
    for p in portable.parameters:
        if not p.type.is_portable:
            p.type.retype(p.type.portable)
            changed = True
    if not portable.return_type.is_portable:
        portable.return_type.retype(portable.return_type.portable)

    if not changed:
        return None

    portable.body = body
    return portable


def register_all(registry: WrapperRegistry, wrappers: Iterable[GeneratedFunction]) -> List[GeneratedFunction]:
    """Register each wrapper; returns the ones that were accepted, in order."""
    return [w for w in wrappers if registry.add_checked(w)]


__all__ = ["WrapperRegistry", "derive_portable", "register_all"]
