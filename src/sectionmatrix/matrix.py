"""Combinatorial expansion of test axes into parameter bindings."""

from __future__ import annotations

import logging
from collections import OrderedDict
from itertools import product
from math import prod
from typing import Any, Mapping, Sequence

from sectionmatrix.models import AxisKind, AxisSpec, ParameterBinding

logger = logging.getLogger(__name__)

_KIND_ORDER = (AxisKind.TYPE, AxisKind.CONST, AxisKind.VALUE)


def matrix_size(axes: Sequence[AxisSpec]) -> int:
    """Number of bindings ``expand_bindings`` produces for ``axes``.

    Axes multiply: ``a`` with 3 values and ``b`` with 2 values give 6
    combinations. No axes at all still give one (empty) binding.
    """

    return prod(len(axis.values) for axis in axes)


def order_axes(axes: Sequence[AxisSpec], signature_order: Sequence[str]) -> list[AxisSpec]:
    """Sort axes by kind, then by the position of their name in the signature.

    Names missing from ``signature_order`` keep their relative input order
    after the known ones; declarations are validated before this point so
    that only happens for ad-hoc callers.
    """

    position = {name: i for i, name in enumerate(signature_order)}
    fallback = len(position)
    kind_rank = {kind: i for i, kind in enumerate(_KIND_ORDER)}
    return sorted(
        axes,
        key=lambda axis: (kind_rank[axis.kind], position.get(axis.name, fallback)),
    )


def binding_name(indices: Mapping[AxisKind, Sequence[int]]) -> str:
    """Derive the readable suffix for one combination.

    Each kind contributes ``<kind>_<i>`` for a single axis and
    ``<kind>s_<i>_<j>...`` for several; groups are joined with ``__``.
    """

    groups: list[str] = []
    for kind in _KIND_ORDER:
        chosen = indices.get(kind, ())
        if not chosen:
            continue
        label = kind.value + ("s" if len(chosen) > 1 else "")
        groups.append("_".join([label, *(str(i) for i in chosen)]))
    return "__".join(groups)


def expand_bindings(
    axes: Sequence[AxisSpec],
    *,
    signature_order: Sequence[str] | None = None,
) -> list[ParameterBinding]:
    """Expand ``axes`` into every combination, in nested-loop order.

    After ordering (kind first, then signature position) the last axis is
    the fastest-varying digit, exactly as with ``for a in ...: for b in ...``.
    """

    ordered = order_axes(axes, signature_order or [axis.name for axis in axes])
    choices = [list(enumerate(axis.values)) for axis in ordered]

    bindings: list[ParameterBinding] = []
    for combo in product(*choices):
        values: OrderedDict[str, Any] = OrderedDict()
        indices: dict[AxisKind, list[int]] = {}
        for axis, (index, value) in zip(ordered, combo, strict=True):
            values[axis.name] = value
            indices.setdefault(axis.kind, []).append(index)
        bindings.append(
            ParameterBinding(
                values=_signature_ordered(values, signature_order),
                indices={kind: tuple(chosen) for kind, chosen in indices.items()},
            )
        )

    logger.debug("expanded %d axes into %d bindings", len(ordered), len(bindings))
    return bindings


def _signature_ordered(
    values: OrderedDict[str, Any],
    signature_order: Sequence[str] | None,
) -> OrderedDict[str, Any]:
    if not signature_order:
        return values
    ordered: OrderedDict[str, Any] = OrderedDict()
    for name in signature_order:
        if name in values:
            ordered[name] = values[name]
    for name, value in values.items():
        if name not in ordered:
            ordered[name] = value
    return ordered


def expand_matrix(declaration: Any) -> list[ParameterBinding]:
    """Expand a validated :class:`~sectionmatrix.declaration.TestDeclaration`."""

    return expand_bindings(declaration.axes, signature_order=declaration.parameter_names)
