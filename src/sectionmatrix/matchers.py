"""Small comparison matchers for use inside test bodies.

A matcher is a unary predicate with a readable ``repr``; any plain value
acts as an equality matcher through :func:`matches`.
"""

from __future__ import annotations

import operator
from typing import Callable


class Matcher:
    def matches(self, value: object) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    def __call__(self, value: object) -> bool:
        return self.matches(value)

    def __invert__(self) -> "Matcher":
        return Not(self)


class _AnyMatcher(Matcher):
    """Matches everything."""

    def matches(self, value: object) -> bool:
        return True

    def __repr__(self) -> str:
        return "Any()"


class _Compare(Matcher):
    op: Callable[[object, object], bool] = operator.eq

    def __init__(self, expected: object) -> None:
        self.expected = expected

    def matches(self, value: object) -> bool:
        return bool(type(self).op(value, self.expected))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.expected!r})"


class Eq(_Compare):
    op = operator.eq


class Ne(_Compare):
    op = operator.ne


class Lt(_Compare):
    op = operator.lt


class Le(_Compare):
    op = operator.le


class Gt(_Compare):
    op = operator.gt


class Ge(_Compare):
    op = operator.ge


class Not(Matcher):
    def __init__(self, inner: object) -> None:
        self.inner = inner

    def matches(self, value: object) -> bool:
        return not matches(self.inner, value)

    def __repr__(self) -> str:
        return f"Not({self.inner!r})"


class _Predicate(Matcher):
    def __init__(self, name: str, predicate: Callable[[object], bool]) -> None:
        self._name = name
        self._predicate = predicate

    def matches(self, value: object) -> bool:
        return self._predicate(value)

    def __repr__(self) -> str:
        return self._name


Any = _AnyMatcher()
IsTrue = _Predicate("IsTrue", lambda v: v is True)
IsFalse = _Predicate("IsFalse", lambda v: v is False)
IsTruthy = _Predicate("IsTruthy", bool)
IsFalsey = _Predicate("IsFalsey", lambda v: not v)
IsNone = _Predicate("IsNone", lambda v: v is None)
IsNotNone = _Predicate("IsNotNone", lambda v: v is not None)


def matches(expected: object, value: object) -> bool:
    if isinstance(expected, Matcher):
        return expected.matches(value)
    return expected == value


__all__ = [
    "Matcher",
    "Any",
    "Eq",
    "Ne",
    "Lt",
    "Le",
    "Gt",
    "Ge",
    "Not",
    "IsTrue",
    "IsFalse",
    "IsTruthy",
    "IsFalsey",
    "IsNone",
    "IsNotNone",
    "matches",
]
