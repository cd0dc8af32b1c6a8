"""Static discovery of nested sections in a test body.

A section is a nested function decorated with one of the configured marker
names::

    def test_vec(context):
        items = []

        @section
        def starts_empty():
            assert not items

        @context.section("grows on append")
        def grows():
            items.append(1)

            @section
            def keeps_order(): ...

Sibling indices must be computable without running the test, so a marker
reached only through ``if``/``match``/loops/``except``, or defined inside a
helper function or class, is rejected here rather than at run time.
"""

from __future__ import annotations

import ast
import inspect
import logging
import textwrap
from collections import Counter
from typing import Any, Callable, Sequence

from sectionmatrix.config import DEFAULT_SETTINGS, Settings
from sectionmatrix.errors import Err, MatrixError
from sectionmatrix.models import SectionNode, SectionTree

logger = logging.getLogger(__name__)


class _Walker:
    def __init__(
        self,
        markers: Sequence[str],
        *,
        test_name: str | None,
        filename: str | None,
        line_offset: int,
        separator: str = DEFAULT_SETTINGS.name_separator,
    ) -> None:
        self.markers = frozenset(markers)
        self.separator = separator
        self.test_name = test_name
        self.filename = filename
        self.line_offset = line_offset

    def lineno(self, node: ast.AST) -> int | None:
        lineno = getattr(node, "lineno", None)
        if lineno is None:
            return None
        return lineno + self.line_offset

    def error(self, code: Err, node: ast.AST, **ctx: Any) -> MatrixError:
        location = {"test": self.test_name, "file": self.filename, "line": self.lineno(node)}
        location.update(ctx)
        return MatrixError(code, ctx={k: v for k, v in location.items() if v is not None})

    def marker_label(self, stmt: ast.stmt) -> str | None:
        if not isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            return None
        for decorator in stmt.decorator_list:
            target = decorator.func if isinstance(decorator, ast.Call) else decorator
            if not self._is_marker(target):
                continue
            if isinstance(stmt, ast.AsyncFunctionDef):
                raise self.error(
                    Err.INVALID_DECLARATION,
                    stmt,
                    section=stmt.name,
                    error="sections must be plain (non-async) functions",
                )
            if isinstance(decorator, ast.Call):
                return self._call_label(decorator, stmt)
            return stmt.name
        return None

    def _is_marker(self, node: ast.expr) -> bool:
        if isinstance(node, ast.Name):
            return node.id in self.markers
        if isinstance(node, ast.Attribute):
            return node.attr in self.markers
        return False

    def _call_label(self, call: ast.Call, stmt: ast.FunctionDef) -> str:
        label_nodes = list(call.args[:1]) + [kw.value for kw in call.keywords if kw.arg == "name"]
        if not label_nodes:
            return stmt.name
        label = label_nodes[0]
        if isinstance(label, ast.Constant) and isinstance(label.value, str) and label.value:
            return label.value
        raise self.error(
            Err.INVALID_DECLARATION,
            stmt,
            section=stmt.name,
            error="section label must be a non-empty string literal",
        )

    def walk(
        self,
        stmts: Sequence[ast.stmt],
        siblings: list[SectionNode],
        conditional: str | None,
    ) -> None:
        for stmt in stmts:
            label = self.marker_label(stmt)
            if label is not None:
                if "#" in label or self.separator in label:
                    raise self.error(
                        Err.INVALID_DECLARATION,
                        stmt,
                        section=label,
                        error=f"section label must not contain '#' or {self.separator!r}",
                    )
                if conditional is not None:
                    raise self.error(
                        Err.CONDITIONAL_SECTION,
                        stmt,
                        section=label,
                        construct=conditional,
                        error="sections must be reached unconditionally from their parent",
                    )
                children: list[SectionNode] = []
                self.walk(stmt.body, children, None)
                self.warn_on_collisions(children, parent=label)
                siblings.append(
                    SectionNode(
                        name=label,
                        index=len(siblings),
                        children=tuple(children),
                        lineno=self.lineno(stmt),
                    )
                )
                continue
            self._walk_compound(stmt, siblings, conditional)

    def _walk_compound(
        self,
        stmt: ast.stmt,
        siblings: list[SectionNode],
        conditional: str | None,
    ) -> None:
        if isinstance(stmt, ast.If):
            self.walk(stmt.body, siblings, conditional or "if")
            self.walk(stmt.orelse, siblings, conditional or "if")
        elif isinstance(stmt, (ast.For, ast.AsyncFor)):
            self.walk(stmt.body, siblings, conditional or "for")
            self.walk(stmt.orelse, siblings, conditional or "for")
        elif isinstance(stmt, ast.While):
            self.walk(stmt.body, siblings, conditional or "while")
            self.walk(stmt.orelse, siblings, conditional or "while")
        elif isinstance(stmt, ast.Match):
            for case in stmt.cases:
                self.walk(case.body, siblings, conditional or "match")
        elif isinstance(stmt, (ast.Try, ast.TryStar)):
            self.walk(stmt.body, siblings, conditional)
            for handler in stmt.handlers:
                self.walk(handler.body, siblings, conditional or "except")
            self.walk(stmt.orelse, siblings, conditional or "try-else")
            self.walk(stmt.finalbody, siblings, conditional)
        elif isinstance(stmt, (ast.With, ast.AsyncWith)):
            self.walk(stmt.body, siblings, conditional)
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            # Markers inside helpers have no static sibling index.
            self.walk(stmt.body, siblings, conditional or "def")
        elif isinstance(stmt, ast.ClassDef):
            self.walk(stmt.body, siblings, conditional or "class")

    def warn_on_collisions(self, nodes: Sequence[SectionNode], *, parent: str | None) -> None:
        counts = Counter(node.name for node in nodes)
        for name, count in counts.items():
            if count > 1:
                logger.warning(
                    "section name %r used by %d siblings under %s in %s",
                    name,
                    count,
                    parent or "<root>",
                    self.test_name or "<test>",
                )


def discover_sections(
    body: Sequence[ast.stmt],
    *,
    markers: Sequence[str] = DEFAULT_SETTINGS.section_markers,
    test_name: str | None = None,
    filename: str | None = None,
    line_offset: int = 0,
    separator: str = DEFAULT_SETTINGS.name_separator,
) -> SectionTree:
    """Build the :class:`SectionTree` of an already-parsed test body.

    Labels may not contain ``#`` or ``separator``; both are reserved for
    generated case names.
    """

    walker = _Walker(
        markers,
        test_name=test_name,
        filename=filename,
        line_offset=line_offset,
        separator=separator,
    )
    roots: list[SectionNode] = []
    walker.walk(body, roots, None)
    walker.warn_on_collisions(roots, parent=None)
    return SectionTree(children=tuple(roots))


def parse_function(fn: Callable[..., Any], *, test_name: str | None = None) -> tuple[ast.FunctionDef, str | None, int]:
    """Parse the source of ``fn`` into its ``FunctionDef`` node.

    Returns the node, the source file and the offset that maps node line
    numbers back to file line numbers.
    """

    target = inspect.unwrap(fn)
    name = test_name or getattr(target, "__qualname__", repr(target))
    try:
        lines, start = inspect.getsourcelines(target)
        filename = inspect.getsourcefile(target)
    except (OSError, TypeError) as exc:
        raise MatrixError(
            Err.MISSING_SOURCE,
            ctx={"test": name, "error": "source code unavailable"},
            cause=exc,
        )

    module = ast.parse(textwrap.dedent("".join(lines)))
    node = module.body[0] if module.body else None
    if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"test": name, "error": "test must be a def statement"},
        )
    return node, filename, max(start - 1, 0)


def discover_function_sections(
    fn: Callable[..., Any],
    *,
    settings: Settings = DEFAULT_SETTINGS,
    test_name: str | None = None,
) -> SectionTree:
    """Discover the sections of a Python test function from its source."""

    node, filename, offset = parse_function(fn, test_name=test_name)
    tree = discover_sections(
        node.body,
        markers=settings.section_markers,
        test_name=test_name or node.name,
        filename=filename,
        line_offset=offset,
        separator=settings.name_separator,
    )
    logger.debug(
        "discovered %d leaf sections in %s",
        len(tree.leaves()),
        test_name or node.name,
    )
    return tree
