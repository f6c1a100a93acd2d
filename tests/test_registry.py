import logging

from pinvoke_binding_generator.models import GeneratedFunction, NativeFunction, Parameter, TypeDescriptor
from pinvoke_binding_generator.registry import WrapperRegistry, derive_portable, register_all


def _wrapper(name, *type_names):
    native = NativeFunction(name, parameters=[Parameter(f"p{i}", TypeDescriptor(t)) for i, t in enumerate(type_names)])
    return GeneratedFunction.from_native(native)


def test_first_registration_wins(caplog):
    registry = WrapperRegistry()
    first = _wrapper("Foo", "Int32")
    second = _wrapper("Foo", "Int32")
    second.body.add("// different body")

    with caplog.at_level(logging.DEBUG, logger="pinvoke_binding_generator"):
        assert registry.add_checked(first)
        assert not registry.add_checked(second)

    assert len(registry) == 1
    assert registry.get(("Foo", ("Int32",))) is first
    assert "Wrapper Foo(Int32) already registered; dropping duplicate" in caplog.text


def test_insertion_order_is_kept():
    registry = WrapperRegistry()
    names = ["Zeta", "Alpha", "Mid"]
    register_all(registry, [_wrapper(n, "Int32") for n in names])
    assert [w.name for w in registry] == names
    assert [w.name for w in registry.wrappers()] == names


def test_overloads_with_different_parameters_coexist():
    registry = WrapperRegistry()
    accepted = register_all(registry, [_wrapper("Foo", "Int32"), _wrapper("Foo", "Single"), _wrapper("Foo", "Int32")])
    assert len(accepted) == 2
    assert _wrapper("Foo", "Single") in registry
    assert ("Foo", ("Byte",)) not in registry


def test_merge_uses_the_same_collision_rule():
    a, b = WrapperRegistry(), WrapperRegistry()
    a.add_checked(_wrapper("Foo", "Int32"))
    b.add_checked(_wrapper("Foo", "Int32"))
    b.add_checked(_wrapper("Bar"))
    assert a.merge(b) == 1
    assert [w.name for w in a] == ["Foo", "Bar"]
    a.clear()
    assert len(a) == 0


def test_portable_counterpart_differs_in_one_parameter(engine, synthesizer, annotate, gen_textures):
    array_form, _ = engine.synthesize(annotate(gen_textures))
    assert not array_form.is_portable

    portable = derive_portable(array_form, synthesizer)
    assert portable is not None
    assert portable.is_portable
    assert portable.name == array_form.name
    assert portable.return_type == array_form.return_type
    assert portable.parameters[0] == array_form.parameters[0]

    before, after = array_form.parameters[1], portable.parameters[1]
    assert (before.type.name, after.type.name) == ("UInt32", "Int32")
    assert before.type.array_rank == after.type.array_rank
    assert before.flow is after.flow
    assert before.wrapper_class is after.wrapper_class

    lines = [line.strip() for line in portable.body]
    assert "fixed (Int32* textures_ptr = textures)" in lines
    assert "Delegates.glGenTextures(n, (UInt32*)textures_ptr);" in lines
    # The source variant is left as it was.
    assert array_form.parameters[1].type.name == "UInt32"


def test_portable_counterpart_without_pinning_forwards(engine, synthesizer, annotate, native, param):
    [w] = engine.synthesize(annotate(native("Clear", param("mask", "GLbitfield"))))
    portable = derive_portable(w, synthesizer)
    assert portable.signature == ("Clear", ("Int32",))
    assert list(portable.body) == ["Delegates.glClear((UInt32)mask);"]


def test_no_counterpart_when_nothing_changes(engine, synthesizer, annotate, fetch):
    for w in engine.synthesize(annotate(fetch)):
        assert derive_portable(w, synthesizer) is None


def test_register_is_add_checked():
    registry = WrapperRegistry()
    assert registry.register(_wrapper("Foo", "Int32"))
    assert not registry.register(_wrapper("Foo", "Int32"))
    assert len(registry) == 1
