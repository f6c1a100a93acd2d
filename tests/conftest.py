"""
Shared builders for the binding generator tests.

Native functions are described the way the JSON loader produces them: raw
native type names (GLuint, GLenum, void, ...) plus pointer/array/reference
flags. Tests that need annotated functions run them through a Classifier.
"""

import pytest

from pinvoke_binding_generator.body_synthesizer import BodySynthesizer
from pinvoke_binding_generator.classifier import Classifier
from pinvoke_binding_generator.models import FlowDirection, NativeFunction, Parameter, TypeDescriptor
from pinvoke_binding_generator.permutations import PermutationEngine
from pinvoke_binding_generator.translator import WrapperTranslator
from pinvoke_binding_generator.type_mapping import NamingConvention, TypeMap


def _param(name, type_name, *, pointer=False, rank=0, flow=FlowDirection.UNDEFINED, reference=False):
    return Parameter(
        name=name,
        type=TypeDescriptor(type_name, is_pointer=pointer or reference, array_rank=rank),
        flow=flow,
        is_reference=reference,
    )


def _native(name, *params, ret="void", ret_pointer=False):
    return NativeFunction(
        name=name,
        return_type=TypeDescriptor(ret, is_pointer=ret_pointer),
        parameters=list(params),
    )


@pytest.fixture
def param():
    return _param


@pytest.fixture
def native():
    return _native


@pytest.fixture
def naming():
    return NamingConvention()


@pytest.fixture
def type_map():
    return TypeMap()


@pytest.fixture
def classifier(naming):
    return Classifier(naming=naming)


@pytest.fixture
def annotate(classifier, type_map):
    """Annotate a raw native function with the default type map."""
    def _annotate(f):
        return classifier.annotate(f, type_map)
    return _annotate


@pytest.fixture
def synthesizer(naming):
    return BodySynthesizer(naming)


@pytest.fixture
def engine(naming, synthesizer):
    return PermutationEngine(naming, synthesizer)


@pytest.fixture
def translator(type_map, naming):
    return WrapperTranslator(type_map, naming)


@pytest.fixture
def gen_textures():
    return _native(
        "GenTextures",
        _param("n", "GLsizei"),
        _param("textures", "GLuint", pointer=True, rank=1, flow=FlowDirection.OUT),
    )


@pytest.fixture
def fetch():
    return _native("Fetch", _param("data", "void", pointer=True, flow=FlowDirection.OUT))
