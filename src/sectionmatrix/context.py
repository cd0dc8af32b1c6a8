"""Path-gated execution of sections.

Each generated case owns one :class:`Context` carrying the execution path it
was generated for. While the test body runs, every section marker that is
reached asks the context whether its body may run:

* an exhausted path (the "run everything" root, or a leaf case that has
  already descended past its last designated section) enables everything;
* otherwise only the sibling whose index equals the next path element runs,
  and entering it consumes that element for the nested markers.

Skipped bodies are never called, so markers nested in them are never asked.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence, TypeVar

from sectionmatrix.errors import Err, MatrixError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class SectionPath:
    """Immutable sequence of sibling indices from the root towards a leaf."""

    indices: tuple[int, ...] = ()

    @classmethod
    def of(cls, path: "SectionPath | Sequence[int]") -> "SectionPath":
        if isinstance(path, SectionPath):
            return path
        return cls(tuple(int(i) for i in path))

    @property
    def is_exhausted(self) -> bool:
        return not self.indices

    def enables(self, index: int) -> bool:
        return self.is_exhausted or self.indices[0] == index

    def enables_prefix(self, sub_path: "SectionPath | Sequence[int]") -> bool:
        """Stateless form of the gate: compare up to the shorter length.

        A section whose full path from the root is ``sub_path`` runs under
        this path exactly when the two agree on every shared position.
        """

        other = SectionPath.of(sub_path).indices
        return all(a == b for a, b in zip(self.indices, other))

    def child(self) -> "SectionPath":
        if self.is_exhausted:
            return self
        return SectionPath(self.indices[1:])

    def __len__(self) -> int:
        return len(self.indices)

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices)


@dataclass
class _Scope:
    path: SectionPath
    prefix: tuple[int, ...] = ()
    queries: int = 0


@dataclass
class Context:
    """Runtime gate for one dynamic execution of a test body."""

    path: SectionPath = field(default_factory=SectionPath)
    entered: list[tuple[tuple[int, ...], str]] = field(default_factory=list, init=False)
    _scopes: list[_Scope] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = SectionPath.of(self.path)
        self._scopes = [_Scope(self.path)]

    @classmethod
    def all_sections(cls) -> "Context":
        """A context that runs every section in one pass."""

        return cls(SectionPath())

    @property
    def remaining(self) -> SectionPath:
        return self._scopes[-1].path

    @property
    def depth(self) -> int:
        return len(self._scopes) - 1

    def next_index(self) -> int:
        """Sibling index of the next marker reached in the current scope."""

        scope = self._scopes[-1]
        index = scope.queries
        scope.queries += 1
        return index

    def enabled_or_enter(self, index: int) -> bool:
        """Ask whether the sibling at ``index`` may run, entering it if so.

        A ``True`` answer pushes a scope over the remaining suffix; the caller
        must balance it with :meth:`leave` once the section body is done.
        """

        scope = self._scopes[-1]
        if not scope.path.enables(index):
            logger.debug("skipping section %s at depth %d", index, self.depth)
            return False
        self._scopes.append(_Scope(scope.path.child(), prefix=scope.prefix + (index,)))
        return True

    def leave(self) -> None:
        if len(self._scopes) == 1:
            raise MatrixError(
                Err.UNBALANCED_CONTEXT,
                ctx={"path": self.path.indices, "error": "leave() without a matching enter"},
            )
        self._scopes.pop()

    def child(self) -> "Context":
        """Independent context for the body of a section entered from here."""

        return Context(self.remaining.child())

    def section(self, target: Any = None, /, *, name: str | None = None) -> Any:
        """Decorator marking a nested function as a section.

        Usable bare (``@context.section``) or with a label
        (``@context.section("label")``). The decorated function is called
        immediately when its section is enabled and never otherwise.
        """

        if callable(target):
            return self._run(target, target.__name__)

        label = target if isinstance(target, str) else name

        def decorator(fn: F) -> F:
            return self._run(fn, label or fn.__name__)

        return decorator

    def _run(self, fn: F, label: str) -> F:
        index = self.next_index()
        if not self.enabled_or_enter(index):
            return fn
        self.entered.append((self._scopes[-1].prefix, label))
        try:
            fn()
        finally:
            self.leave()
        return fn


_ACTIVE: ContextVar[Context | None] = ContextVar("sectionmatrix_context", default=None)


def current_context() -> Context:
    context = _ACTIVE.get()
    if context is None:
        raise MatrixError(
            Err.NO_ACTIVE_CONTEXT,
            ctx={"error": "section reached outside a dispatched test case"},
        )
    return context


@contextmanager
def activate(context: Context) -> Iterator[Context]:
    """Install ``context`` as the target of the module-level :func:`section`."""

    token = _ACTIVE.set(context)
    try:
        yield context
    finally:
        _ACTIVE.reset(token)


def section(target: Any = None, /, *, name: str | None = None) -> Any:
    """Module-level section marker bound to the active :class:`Context`."""

    return current_context().section(target, name=name)
