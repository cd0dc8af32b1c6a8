"""Data structures shared by the matrix, section and generation layers."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field


class AxisKind(Enum):
    """Which flavour of value an axis enumerates.

    The enum order is also the digit order of the matrix: type axes are the
    slowest-varying digits, value axes the fastest.
    """

    TYPE = "type"
    CONST = "const"
    VALUE = "input"


@dataclass(frozen=True)
class AxisSpec:
    """A named parameter bound to an ordered list of candidate values."""

    name: str
    values: Sequence[Any]
    kind: AxisKind = AxisKind.VALUE

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class ParameterBinding:
    """One concrete assignment of a value to every axis of a test.

    ``values`` is keyed in the test signature's parameter order. ``indices``
    records, per axis kind, the 0-based position of each chosen value in
    that same order; it is what generated names are derived from.
    """

    values: Mapping[str, Any] = field(default_factory=OrderedDict)
    indices: Mapping[AxisKind, tuple[int, ...]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.values

    @property
    def name(self) -> str:
        from sectionmatrix.matrix import binding_name

        return binding_name(self.indices)

    def as_kwargs(self) -> dict[str, Any]:
        return dict(self.values)


@dataclass(frozen=True)
class SectionNode:
    """A section marker discovered in a test body.

    ``index`` is the node's position among its direct siblings, which is the
    only key the gating protocol uses; ``name`` is for reports.
    """

    name: str
    index: int
    children: tuple["SectionNode", ...] = ()
    lineno: int | None = None

    @property
    def is_leaf(self) -> bool:
        return not self.children


@dataclass(frozen=True)
class SectionTree:
    """Root of the discovered section hierarchy for one test."""

    children: tuple[SectionNode, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.children

    def paths(self) -> list[tuple[int, ...]]:
        """Every execution path, one per leaf, depth-first.

        A tree without sections yields the single empty path.
        """

        if self.is_empty:
            return [()]
        return [tuple(node.index for node in chain) for chain in self.leaf_chains()]

    def leaf_chains(self) -> Iterator[tuple[SectionNode, ...]]:
        def walk(nodes: Sequence[SectionNode], prefix: tuple[SectionNode, ...]):
            for node in nodes:
                chain = prefix + (node,)
                if node.is_leaf:
                    yield chain
                else:
                    yield from walk(node.children, chain)

        yield from walk(self.children, ())

    def leaves(self) -> list[SectionNode]:
        return [chain[-1] for chain in self.leaf_chains()]

    def resolve(self, path: Sequence[int]) -> tuple[SectionNode, ...]:
        """Map a path of sibling indices to its chain of nodes.

        Raises ``KeyError`` when a prefix of ``path`` does not exist.
        """

        chain: list[SectionNode] = []
        nodes: Sequence[SectionNode] = self.children
        for depth, index in enumerate(path):
            if index < 0 or index >= len(nodes):
                raise KeyError((tuple(path[: depth + 1]), "no such section"))
            node = nodes[index]
            chain.append(node)
            nodes = node.children
        return tuple(chain)


class TestCaseEntry(BaseModel):
    """One independently runnable generated case."""

    __test__ = False

    name: str
    test: str
    binding: dict[str, Any] = Field(default_factory=dict)
    binding_name: str = ""
    path: tuple[int, ...] = ()
    section_names: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def key(self) -> tuple[str, str, tuple[int, ...]]:
        return (self.test, self.binding_name, self.path)
