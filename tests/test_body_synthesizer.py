import pytest

from pinvoke_binding_generator.body_synthesizer import (
    DEFAULT_DISCIPLINES,
    PinningDiscipline,
    GC_HANDLE,
    GC_HANDLE_TYPE,
    BodySynthesizer,
)
from pinvoke_binding_generator.errors import UnknownWrapperClassError, WrapperSynthesisError
from pinvoke_binding_generator.models import PINNED_CLASSES, FlowDirection, GeneratedFunction, WrapperClass
from pinvoke_binding_generator.permutations import as_array, as_object, as_reference


@pytest.fixture
def mixed(annotate, native, param, naming):
    """Mixed(UInt32[] a, object o, out Int32 r) -> Int32, with o flagged Out."""
    f = annotate(native(
        "Mixed",
        param("a", "GLuint", pointer=True, rank=1),
        param("o", "void", pointer=True),
        param("r", "GLint", reference=True, flow=FlowDirection.OUT),
        ret="GLint",
    ))
    g = GeneratedFunction.from_native(f)
    as_array(g.parameters[0], naming)
    as_object(g.parameters[1], naming)
    g.parameters[1].flow = FlowDirection.OUT
    as_reference(g.parameters[2], naming)
    return g


def _handles(body):
    """(allocated, freed) handle names, freed ones taken from the finally block only."""
    lines = [line.strip() for line in body]
    allocated = [line.split()[1] for line in lines if f"{GC_HANDLE}.Alloc(" in line]
    freed = []
    if "finally" in lines:
        start = lines.index("finally")
        for line in lines[start + 2:]:
            if line == "}":
                break
            freed.append(line[: -len(".Free();")])
    return allocated, freed


def test_scope_nesting_and_assign_back(synthesizer, mixed):
    body = synthesizer.emit_body(mixed)
    assert list(body) == [
        "unsafe",
        "{",
        "    fixed (UInt32* a_ptr = a)",
        "    fixed (Int32* r_ptr = &r)",
        "    {",
        f"        {GC_HANDLE} o_ptr = {GC_HANDLE}.Alloc(o, {GC_HANDLE_TYPE}.Pinned);",
        "        try",
        "        {",
        "            Int32 retval = Delegates.glMixed(a_ptr, o_ptr.AddrOfPinnedObject(), r_ptr);",
        "            o = (object)o_ptr.Target;",
        "            r = *r_ptr;",
        "            return retval;",
        "        }",
        "        finally",
        "        {",
        "            o_ptr.Free();",
        "        }",
        "    }",
        "}",
    ]


def test_every_handle_is_released_in_finally(synthesizer, engine, annotate, native, param):
    f = annotate(native(
        "Two",
        param("x", "void", pointer=True),
        param("y", "void", pointer=True),
        param("n", "GLsizei"),
    ))
    wrappers = engine.synthesize(f)
    assert len(wrappers) == 4
    for w in wrappers:
        allocated, freed = _handles(w.body)
        assert sorted(allocated) == sorted(freed)
        objects = [p.name for p in w.parameters if p.wrapper_class is WrapperClass.GENERIC_OBJECT]
        assert allocated == [f"{name}_ptr" for name in objects]


def test_handles_are_acquired_before_try(synthesizer, mixed):
    lines = [line.strip() for line in synthesizer.emit_body(mixed)]
    alloc = next(i for i, line in enumerate(lines) if ".Alloc(" in line)
    assert alloc < lines.index("try") < lines.index("finally")


def test_arrays_are_not_assigned_back(synthesizer, engine, annotate, gen_textures):
    array_form, ref_form = engine.synthesize(annotate(gen_textures))
    assert not any("= *textures_ptr" in line for line in array_form.body)
    assert any(line.strip() == "textures = *textures_ptr;" for line in ref_form.body)
    assert any(line.strip() == "fixed (UInt32* textures_ptr = textures)" for line in array_form.body)
    assert any(line.strip() == "fixed (UInt32* textures_ptr = &textures)" for line in ref_form.body)


def test_void_call_has_no_temporary(synthesizer, engine, annotate, gen_textures):
    array_form, _ = engine.synthesize(annotate(gen_textures))
    text = array_form.body.to_text()
    assert "retval" not in text
    assert "Delegates.glGenTextures(n, textures_ptr);" in text


def test_portable_mode_declares_portable_pinned_types(synthesizer, engine, annotate, gen_textures):
    array_form, _ = engine.synthesize(annotate(gen_textures))
    body = synthesizer.emit_body(array_form, want_portable=True)
    lines = [line.strip() for line in body]
    assert "fixed (Int32* textures_ptr = textures)" in lines
    assert "Delegates.glGenTextures(n, (UInt32*)textures_ptr);" in lines


def test_emit_body_is_deterministic(synthesizer, mixed):
    assert list(synthesizer.emit_body(mixed)) == list(synthesizer.emit_body(mixed.copy()))


def test_forward_body_casts_to_native_types(synthesizer, engine, annotate, native, param):
    [w] = engine.synthesize(annotate(native("Clear", param("mask", "GLbitfield"))))
    assert list(synthesizer.forward_body(w, want_portable=True)) == ["Delegates.glClear((UInt32)mask);"]


def test_unchecked_numeric_cast(synthesizer, engine, annotate, native, param):
    [w] = engine.synthesize(annotate(native(
        "LineStipple",
        param("factor", "GLint"),
        param("pattern", "GLushort"),
    )))
    assert list(w.body) == ["Delegates.glLineStipple(factor, pattern);"]
    assert list(synthesizer.forward_body(w, want_portable=True)) == [
        "Delegates.glLineStipple(factor, unchecked((UInt16)pattern));"
    ]


def test_missing_discipline_is_fatal(naming, mixed):
    disciplines = {k: v for k, v in DEFAULT_DISCIPLINES.items() if k is not WrapperClass.GENERIC_OBJECT}
    synth = BodySynthesizer(naming, disciplines=disciplines)
    with pytest.raises(UnknownWrapperClassError) as exc:
        synth.emit_body(mixed)
    assert isinstance(exc.value, WrapperSynthesisError)
    assert exc.value.function_name == "Mixed"
    assert exc.value.parameter_name == "o"
    assert "Unknown parameter type" in str(exc.value)


def test_every_pinned_class_has_a_discipline():
    assert set(DEFAULT_DISCIPLINES) == set(PINNED_CLASSES)
    assert DEFAULT_DISCIPLINES[WrapperClass.GENERIC_OBJECT] is PinningDiscipline.PINNED_HANDLE
