import pytest

from sectionmatrix.config import Settings
from sectionmatrix.declaration import declare
from sectionmatrix.errors import Err, MatrixError
from sectionmatrix.generator import generate_cases, section_chains


def test_parameters_without_sections_give_one_entry_per_binding() -> None:
    def check(a, b):
        pass

    entries = generate_cases(declare(check, parameters={"b": ["3", "4"], "a": [1, 2, 5]}))

    assert len(entries) == 6
    assert [entry.binding for entry in entries] == [
        {"a": 1, "b": "3"},
        {"a": 1, "b": "4"},
        {"a": 2, "b": "3"},
        {"a": 2, "b": "4"},
        {"a": 5, "b": "3"},
        {"a": 5, "b": "4"},
    ]
    assert entries[0].name == "check::inputs_0_0"
    assert entries[-1].name == "check::inputs_2_1"
    assert all(entry.path == () for entry in entries)
    assert len({entry.name for entry in entries}) == 6


def test_two_top_level_sections_give_two_entries() -> None:
    def check(context):
        @context.section
        def X():
            pass

        @context.section
        def Y():
            pass

    entries = generate_cases(declare(check))

    assert [(entry.name, entry.path) for entry in entries] == [
        ("check::X", (0,)),
        ("check::Y", (1,)),
    ]
    assert entries[1].section_names == ("Y",)
    assert entries[1].binding == {}


def test_bindings_are_the_outer_loop_over_nested_sections() -> None:
    def check(size, context):
        @context.section("empty")
        def _():
            pass

        @context.section
        def grows():
            @context.section
            def by_one():
                pass

            @context.section
            def by_many():
                pass

    entries = generate_cases(declare(check, parameters={"size": [0, 8]}))

    assert [entry.name for entry in entries] == [
        "check::input_0::empty",
        "check::input_0::grows::by_one",
        "check::input_0::grows::by_many",
        "check::input_1::empty",
        "check::input_1::grows::by_one",
        "check::input_1::grows::by_many",
    ]
    assert entries[2].path == (1, 1)
    assert entries[5].binding == {"size": 8}


def test_regeneration_is_deterministic() -> None:
    def check(a, T, context):
        @context.section
        def one():
            pass

        @context.section
        def two():
            pass

    first = generate_cases(declare(check, parameters={"a": [1, 2]}, type_parameters={"T": [int, str]}))
    second = generate_cases(declare(check, parameters={"a": [1, 2]}, type_parameters={"T": [int, str]}))

    assert [entry.model_dump() for entry in first] == [entry.model_dump() for entry in second]
    assert first[0].name == "check::type_0__input_0::one"
    assert len(first) == 8


def test_sibling_name_collisions_get_index_suffix() -> None:
    def check(context):
        @context.section("same")
        def _():
            pass

        @context.section("same")
        def _():
            pass

        @context.section
        def other():
            pass

    declaration = declare(check)

    assert [labels for _, labels in section_chains(declaration)] == [
        ("same#0",),
        ("same#1",),
        ("other",),
    ]
    assert [entry.name for entry in generate_cases(declaration)] == [
        "check::same#0",
        "check::same#1",
        "check::other",
    ]


def test_name_separator_is_configurable() -> None:
    def check(a, context):
        @context.section
        def inner():
            pass

    declaration = declare(check, parameters={"a": [1]}, settings=Settings(name_separator="/"))

    assert [entry.name for entry in generate_cases(declaration)] == ["check/input_0/inner"]


def test_plain_test_gives_single_unnamed_case() -> None:
    def check():
        pass

    entries = generate_cases(declare(check))

    assert len(entries) == 1
    assert entries[0].name == "check"
    assert entries[0].key() == ("check", "", ())


def test_labels_that_could_collide_with_generated_names_are_rejected() -> None:
    def suffixed(context):
        @context.section("x")
        def _():
            pass

        @context.section("x")
        def _():
            pass

        @context.section("x#1")
        def _():
            pass

    def nested(context):
        @context.section("a::b")
        def _():
            pass

        @context.section
        def a():
            @context.section
            def b():
                pass

    for check in (suffixed, nested):
        with pytest.raises(MatrixError) as exc:
            declare(check)
        assert exc.value.code is Err.INVALID_DECLARATION


def test_generated_names_are_unique_with_collisions_and_nesting() -> None:
    def check(n, context):
        @context.section("x")
        def _():
            pass

        @context.section("x")
        def _():
            pass

        @context.section
        def a():
            @context.section
            def b():
                pass

    names = [entry.name for entry in generate_cases(declare(check, parameters={"n": [1, 2]}))]

    assert len(names) == len(set(names)) == 6
