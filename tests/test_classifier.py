import logging

import pytest

from pinvoke_binding_generator.classifier import (
    DEFAULT_RULES,
    Classifier,
    ClassificationRule,
    Position,
    classify,
)
from pinvoke_binding_generator.models import FlowDirection, TypeDescriptor, WrapperClass


def test_string_return_is_retyped_to_address():
    c = Classifier().classify(TypeDescriptor("String"), Position.RETURN)
    assert c.wrapper_class is WrapperClass.STRING_RETURN
    assert c.type.name == "IntPtr"
    assert not c.type.is_pointer
    assert c.rule == "string-return"


def test_string_parameter_is_not_a_string_return():
    assert classify(TypeDescriptor("String"), Position.PARAMETER) is WrapperClass.NONE


def test_void_pointer_by_position():
    t = TypeDescriptor("void", is_pointer=True)
    ret = Classifier().classify(t, Position.RETURN)
    par = Classifier().classify(t, Position.PARAMETER)
    assert ret.wrapper_class is WrapperClass.GENERIC_RETURN
    assert par.wrapper_class is WrapperClass.GENERIC_OBJECT
    assert ret.type.name == par.type.name == "IntPtr"


def test_array_reference_pointer_and_none():
    assert classify(TypeDescriptor("UInt32", is_pointer=True, array_rank=1)) is WrapperClass.ARRAY
    assert classify(TypeDescriptor("Int32", is_pointer=True), is_reference=True) is WrapperClass.REFERENCE
    assert classify(TypeDescriptor("Int32", is_pointer=True)) is WrapperClass.POINTER
    assert classify(TypeDescriptor("Int32")) is WrapperClass.NONE
    # A void pointer with an array rank is an array, not a generic object.
    assert classify(TypeDescriptor("void", is_pointer=True, array_rank=1)) is WrapperClass.ARRAY


def test_line_stipple_pattern_is_unchecked():
    t = TypeDescriptor("UInt16")
    assert classify(t, function_name="LineStipple") is WrapperClass.UNCHECKED_NUMERIC
    assert classify(t, function_name="PolygonStipple") is WrapperClass.NONE
    assert classify(TypeDescriptor("Int32"), function_name="LineStipple") is WrapperClass.NONE


def test_shader_source_strings_become_an_array():
    c = Classifier().classify(TypeDescriptor("String"), Position.PARAMETER, function_name="ShaderSourceARB")
    assert c.wrapper_class is WrapperClass.NONE
    assert c.type.spelling == "String[]"


def test_classify_is_pure_and_deterministic():
    t = TypeDescriptor("void", is_pointer=True)
    before = t.copy()
    first = Classifier().classify(t, Position.PARAMETER)
    second = Classifier().classify(t, Position.PARAMETER)
    assert t == before
    assert first == second


def test_reclassifying_a_result_is_stable():
    for t, pos, ref in [
        (TypeDescriptor("UInt32", is_pointer=True, array_rank=1), Position.PARAMETER, False),
        (TypeDescriptor("Int32", is_pointer=True), Position.PARAMETER, True),
        (TypeDescriptor("Int32", is_pointer=True), Position.PARAMETER, False),
        (TypeDescriptor("Single"), Position.PARAMETER, False),
    ]:
        c = Classifier().classify(t, pos, is_reference=ref)
        again = Classifier().classify(c.type, pos, is_reference=ref)
        assert again.wrapper_class is c.wrapper_class
        assert again.type == c.type


def test_custom_rules_are_evaluated_first():
    rule = ClassificationRule(
        name="force-pointer",
        positions=frozenset({Position.PARAMETER}),
        predicate=lambda o: o.function_name == "Special",
        wrapper_class=WrapperClass.POINTER,
    )
    c = Classifier(rules=(rule,) + DEFAULT_RULES)
    assert c.classify(TypeDescriptor("Int32"), Position.PARAMETER, function_name="Special").wrapper_class is WrapperClass.POINTER
    assert c.classify(TypeDescriptor("Int32"), Position.PARAMETER, function_name="Other").wrapper_class is WrapperClass.NONE


def test_annotate_maps_types_and_leaves_input_untouched(annotate, native, param, caplog):
    raw = native(
        "LineStipple",
        param("factor", "GLint"),
        param("pattern", "GLushort"),
    )
    with caplog.at_level(logging.DEBUG, logger="pinvoke_binding_generator"):
        f = annotate(raw)
    assert [p.type.name for p in raw.parameters] == ["GLint", "GLushort"]
    assert [p.type.name for p in f.parameters] == ["Int32", "UInt16"]
    assert f.parameters[1].wrapper_class is WrapperClass.UNCHECKED_NUMERIC
    assert f.parameters[1].type.portable == "Int16"
    assert "special case 'line-stipple-unchecked'" in caplog.text


def test_annotate_normalizes_return_type_to_portable(annotate, native):
    f = annotate(native("GetError", ret="GLuint"))
    assert f.return_type.name == "Int32"
    assert f.return_type.is_portable


def test_annotate_generic_object_parameter(annotate, fetch):
    f = annotate(fetch)
    p = f.parameters[0]
    assert p.wrapper_class is WrapperClass.GENERIC_OBJECT
    assert p.type.spelling == "IntPtr"
    assert p.flow is FlowDirection.OUT
    assert f.needs_wrapper


def test_object_return_is_a_generic_return():
    c = Classifier().classify(TypeDescriptor("object"), Position.RETURN)
    assert c.wrapper_class is WrapperClass.GENERIC_RETURN
    assert c.type.name == "IntPtr"
    assert c.rule == "object-return"
    # Only the return position is rewritten.
    assert classify(TypeDescriptor("object"), Position.PARAMETER) is WrapperClass.NONE


def test_annotate_object_return(annotate, native):
    f = annotate(native("GetObjectHandle", ret="object"))
    assert f.return_type.wrapper_class is WrapperClass.GENERIC_RETURN
    assert f.return_type.spelling == "IntPtr"
