"""Test declarations and their generation-time validation.

A declaration ties a test function to its fixture and axes::

    @matrix_test(
        fixture=Database,
        parameters={"b": ["3", "4"], "a": [1, 2, 5]},
    )
    def test_insert(db, a, b, context): ...

Validation is all-or-nothing: any problem raises :class:`MatrixError`
before a single case is generated.
"""

from __future__ import annotations

import inspect
import logging
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence

from sectionmatrix.config import DEFAULT_SETTINGS, Settings
from sectionmatrix.errors import Err, MatrixError
from sectionmatrix.fixtures import fixture_flavor, fixture_label
from sectionmatrix.models import AxisKind, AxisSpec, SectionTree
from sectionmatrix.sections import discover_function_sections

logger = logging.getLogger(__name__)

DECLARATION_ATTR = "__sectionmatrix__"

AxisInput = Mapping[str, Sequence[Any]] | Iterable[tuple[str, Sequence[Any]]] | None

_CONST_TYPES = (type(None), bool, int, float, complex, str, bytes)


@dataclass(frozen=True)
class TestDeclaration:
    """A validated test: its function, fixture, axes and section tree."""

    __test__ = False

    function: Callable[..., Any]
    name: str
    fixture: Any | None = None
    fixture_parameter: str | None = None
    axes: tuple[AxisSpec, ...] = ()
    parameter_names: tuple[str, ...] = ()
    accepts_context: bool = False
    sections: SectionTree = field(default_factory=SectionTree)
    settings: Settings = DEFAULT_SETTINGS

    @property
    def is_parameterized(self) -> bool:
        return bool(self.axes)

    def axes_of(self, kind: AxisKind) -> tuple[AxisSpec, ...]:
        return tuple(axis for axis in self.axes if axis.kind is kind)


def _axis_pairs(raw: AxisInput) -> list[tuple[str, Sequence[Any]]]:
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return list(raw.items())
    pairs: list[tuple[str, Sequence[Any]]] = []
    for item in raw:
        if isinstance(item, AxisSpec):
            pairs.append((item.name, item.values))
            continue
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise MatrixError(
                Err.INVALID_DECLARATION,
                ctx={"error": "axes must be a mapping or (name, values) pairs", "item": item},
            )
        pairs.append((item[0], item[1]))
    return pairs


def _is_type_value(value: Any) -> bool:
    return isinstance(value, type) or typing.get_origin(value) is not None


def _is_const_value(value: Any) -> bool:
    if isinstance(value, (tuple, frozenset)):
        return all(_is_const_value(item) for item in value)
    return isinstance(value, _CONST_TYPES)


def build_axes(
    test_name: str,
    *,
    parameters: AxisInput = None,
    type_parameters: AxisInput = None,
    const_parameters: AxisInput = None,
) -> tuple[AxisSpec, ...]:
    """Turn raw axis inputs into :class:`AxisSpec` objects, checking their values."""

    axes: list[AxisSpec] = []
    for kind, raw in (
        (AxisKind.VALUE, parameters),
        (AxisKind.TYPE, type_parameters),
        (AxisKind.CONST, const_parameters),
    ):
        for name, values in _axis_pairs(raw):
            if not isinstance(name, str) or not name.isidentifier():
                raise MatrixError(
                    Err.INVALID_AXIS,
                    ctx={"test": test_name, "parameter": name, "error": "axis name must be an identifier"},
                )
            if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
                raise MatrixError(
                    Err.INVALID_AXIS,
                    ctx={"test": test_name, "parameter": name, "error": "axis values must be a list"},
                )
            if not values:
                raise MatrixError(
                    Err.INVALID_AXIS,
                    ctx={"test": test_name, "parameter": name, "error": "axis has no values"},
                )
            if kind is AxisKind.TYPE:
                bad = [v for v in values if not _is_type_value(v)]
                if bad:
                    raise MatrixError(
                        Err.INVALID_AXIS,
                        ctx={"test": test_name, "parameter": name, "error": "type axis values must be types", "value": bad[0]},
                    )
            if kind is AxisKind.CONST:
                bad = [v for v in values if not _is_const_value(v)]
                if bad:
                    raise MatrixError(
                        Err.INVALID_AXIS,
                        ctx={"test": test_name, "parameter": name, "error": "const axis values must be immutable literals", "value": bad[0]},
                    )
            axes.append(AxisSpec(name=name, values=tuple(values), kind=kind))
    return tuple(axes)


def validate_declaration(
    fn: Callable[..., Any],
    axes: Sequence[AxisSpec],
    *,
    fixture: Any | None = None,
    settings: Settings = DEFAULT_SETTINGS,
    name: str | None = None,
) -> TestDeclaration:
    """Check ``axes`` and ``fixture`` against the signature of ``fn``.

    Returns the declaration with axes reordered to the signature and the
    section tree discovered from the body.
    """

    test_name = name or getattr(fn, "__name__", None) or repr(fn)
    params = [
        p
        for p in inspect.signature(fn).parameters.values()
        if p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]

    fixture_parameter: str | None = None
    if fixture is not None:
        if (
            not params
            or params[0].kind is inspect.Parameter.KEYWORD_ONLY
            or params[0].name == settings.context_parameter
        ):
            raise MatrixError(
                Err.MISSING_FIXTURE_ARGUMENT,
                ctx={
                    "test": test_name,
                    "fixture": fixture_label(fixture),
                    "error": "test is missing the fixture as its first argument",
                },
            )
        fixture_flavor(fixture)
        fixture_parameter = params[0].name
        params = params[1:]

    accepts_context = any(p.name == settings.context_parameter for p in params)
    bindable = [p for p in params if p.name != settings.context_parameter]
    bindable_names = [p.name for p in bindable]

    seen: set[str] = set()
    for axis in axes:
        if axis.name not in bindable_names:
            raise MatrixError(
                Err.UNKNOWN_PARAMETER,
                ctx={
                    "test": test_name,
                    "parameter": axis.name,
                    "error": f"test input '{axis.name}' is not a parameter of the test",
                },
            )
        if axis.name in seen:
            raise MatrixError(
                Err.DUPLICATE_PARAMETER,
                ctx={
                    "test": test_name,
                    "parameter": axis.name,
                    "error": f"test input '{axis.name}' specified more than once",
                },
            )
        seen.add(axis.name)

    for param in bindable:
        if param.name not in seen and param.default is inspect.Parameter.empty:
            raise MatrixError(
                Err.UNBOUND_PARAMETER,
                ctx={
                    "test": test_name,
                    "parameter": param.name,
                    "error": f"parameter '{param.name}' has no default and is not bound to an axis",
                },
            )

    position = {param_name: i for i, param_name in enumerate(bindable_names)}
    ordered_axes = tuple(sorted(axes, key=lambda axis: position[axis.name]))
    sections = discover_function_sections(fn, settings=settings, test_name=test_name)

    declaration = TestDeclaration(
        function=fn,
        name=test_name,
        fixture=fixture,
        fixture_parameter=fixture_parameter,
        axes=ordered_axes,
        parameter_names=tuple(name for name in bindable_names if name in seen),
        accepts_context=accepts_context,
        sections=sections,
        settings=settings,
    )
    logger.debug(
        "declared %s with %d axes and %d leaf sections",
        test_name,
        len(ordered_axes),
        len(sections.leaves()),
    )
    return declaration


def declare(
    fn: Callable[..., Any],
    *,
    fixture: Any | None = None,
    parameters: AxisInput = None,
    type_parameters: AxisInput = None,
    const_parameters: AxisInput = None,
    settings: Settings = DEFAULT_SETTINGS,
    name: str | None = None,
) -> TestDeclaration:
    test_name = name or getattr(fn, "__name__", None) or repr(fn)
    axes = build_axes(
        test_name,
        parameters=parameters,
        type_parameters=type_parameters,
        const_parameters=const_parameters,
    )
    return validate_declaration(fn, axes, fixture=fixture, settings=settings, name=test_name)


def matrix_test(
    *,
    fixture: Any | None = None,
    parameters: AxisInput = None,
    type_parameters: AxisInput = None,
    const_parameters: AxisInput = None,
    settings: Settings = DEFAULT_SETTINGS,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator form of :func:`declare`.

    The function is returned unchanged; its declaration is attached as
    ``__sectionmatrix__`` so collectors can find it.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        declaration = declare(
            fn,
            fixture=fixture,
            parameters=parameters,
            type_parameters=type_parameters,
            const_parameters=const_parameters,
            settings=settings,
        )
        setattr(fn, DECLARATION_ATTR, declaration)
        return fn

    return decorator


def declaration_of(fn: Any) -> TestDeclaration | None:
    declaration = getattr(fn, DECLARATION_ATTR, None)
    return declaration if isinstance(declaration, TestDeclaration) else None


def with_settings(declaration: TestDeclaration, settings: Settings) -> TestDeclaration:
    """Re-validate a declaration made with the default settings under ``settings``.

    Declarations given explicit settings are returned unchanged.
    """

    if declaration.settings is not DEFAULT_SETTINGS or settings == DEFAULT_SETTINGS:
        return declaration
    return validate_declaration(
        declaration.function,
        declaration.axes,
        fixture=declaration.fixture,
        settings=settings,
        name=declaration.name,
    )
