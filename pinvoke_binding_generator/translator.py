#!/usr/bin/env python3
"""
Translation pass: classification, synthesis and registration of every native
entry point.

    translator = WrapperTranslator(type_map, naming)
    report = translator.translate_all(natives)
    for wrapper in translator.registry: ...

A synthesis fault in one function is logged and recorded in the report; the
remaining functions are still translated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
import logging

from .body_synthesizer import BodySynthesizer
from .classifier import Classifier
from .errors import WrapperSynthesisError
from .models import GeneratedFunction, NativeFunction, NativeFunctionCollection
from .permutations import PermutationEngine
from .registry import WrapperRegistry, derive_portable
from .type_mapping import NamingConvention, TypeMap

logger = logging.getLogger(__name__)


@dataclass
class TranslationReport:
    translated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    wrappers: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict:
        return {
            "translated": len(self.translated),
            "failed": list(self.failed),
            "wrappers": self.wrappers,
        }


class WrapperTranslator:
    """
    Owns one run's registry. Annotated native functions are kept in
    `natives`, which the emitter uses for the entry-point table.
    """

    def __init__(
        self,
        type_map: Optional[TypeMap] = None,
        naming: Optional[NamingConvention] = None,
        *,
        classifier: Optional[Classifier] = None,
        synthesizer: Optional[BodySynthesizer] = None,
        engine: Optional[PermutationEngine] = None,
        registry: Optional[WrapperRegistry] = None,
    ) -> None:
        self.type_map = type_map or TypeMap()
        self.naming = naming or NamingConvention()
        self.classifier = classifier or Classifier(naming=self.naming)
        self.synthesizer = synthesizer or BodySynthesizer(self.naming)
        self.engine = engine or PermutationEngine(self.naming, self.synthesizer)
        self.registry = registry if registry is not None else WrapperRegistry()
        self.natives = NativeFunctionCollection()

    def translate(self, native: NativeFunction) -> List[GeneratedFunction]:
        """
        Classify and synthesize one native function, then register its
        variants and their portable counterparts. Returns the wrappers that
        were registered. Raises WrapperSynthesisError on a synthesis fault;
        nothing is registered for the function in that case.
        """
        annotated = self.classifier.annotate(native, self.type_map)
        variants = self.engine.synthesize(annotated)

        # Portable counterparts are derived up front so that a fault leaves
        # the registry untouched.
        portables = {
            id(v): derive_portable(v, self.synthesizer) for v in variants if not v.is_portable
        }

        if not self.natives.add(annotated):
            return []

        registered = [v for v in variants if self.registry.add_checked(v)]
        for v in list(registered):
            p = portables.get(id(v))
            if p is not None and self.registry.add_checked(p):
                registered.append(p)
        logger.debug("%s: %d wrapper(s) registered", native.name, len(registered))
        return registered

    def translate_all(self, natives: Iterable[NativeFunction]) -> TranslationReport:
        report = TranslationReport()
        for native in natives:
            try:
                added = self.translate(native)
            except WrapperSynthesisError:
                logger.exception("Failed to synthesize wrappers for %s", native.name)
                report.failed.append(native.name)
                continue
            report.translated.append(native.name)
            report.wrappers += len(added)
        logger.info(
            "Translated %d function(s) into %d wrapper(s); %d failed",
            len(report.translated), report.wrappers, len(report.failed),
        )
        return report


__all__ = ["TranslationReport", "WrapperTranslator"]
