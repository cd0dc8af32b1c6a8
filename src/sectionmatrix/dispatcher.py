"""Running generated cases: fixture preparation, binding and gating."""

from __future__ import annotations

import copy
import logging
import time
from typing import Any, Iterable, Sequence

from sectionmatrix.context import Context, activate
from sectionmatrix.declaration import TestDeclaration
from sectionmatrix.errors import FixturePreparationError
from sectionmatrix.fixtures import provide_fixture
from sectionmatrix.generator import generate_cases
from sectionmatrix.models import TestCaseEntry
from sectionmatrix.result import CaseOutcome, CaseStatus, Failure

logger = logging.getLogger(__name__)


def _call_body(declaration: TestDeclaration, kwargs: dict[str, Any], state: dict[str, bool]) -> Any:
    if declaration.fixture is None:
        state["started"] = True
        return declaration.function(**kwargs)
    with provide_fixture(declaration.fixture) as instance:
        state["started"] = True
        return declaration.function(instance, **kwargs)


def dispatch(declaration: TestDeclaration, entry: TestCaseEntry) -> CaseOutcome:
    """Run one generated case and report how it went.

    Each call builds its own :class:`Context` for ``entry.path``. Nothing
    raised by the fixture or the body escapes except ``KeyboardInterrupt``;
    it is folded into the returned :class:`CaseOutcome`.
    """

    context = Context(entry.path)
    # Each case gets its own copy of the bound values.
    kwargs = copy.deepcopy(dict(entry.binding))
    if declaration.accepts_context:
        kwargs[declaration.settings.context_parameter] = context

    state = {"started": False}
    status = CaseStatus.PASSED
    message: str | None = None
    start = time.perf_counter()
    try:
        with activate(context):
            result = _call_body(declaration, kwargs, state)
    except FixturePreparationError as exc:
        status = CaseStatus.FAILED if state["started"] else CaseStatus.ERROR
        message = str(exc)
    except KeyboardInterrupt:
        raise
    except BaseException as exc:
        status = CaseStatus.FAILED if state["started"] else CaseStatus.ERROR
        message = str(Failure.from_error(exc))
    else:
        if isinstance(result, Failure):
            status = CaseStatus.FAILED
            message = result.message or "test returned a failure"
    duration = time.perf_counter() - start

    outcome = CaseOutcome(
        name=entry.name,
        status=status,
        message=message,
        duration_s=duration,
        sections=tuple(label for _, label in context.entered),
    )
    if outcome.ok:
        logger.info("%s passed in %.3fs", entry.name, duration)
    else:
        logger.info("%s %s: %s", entry.name, status.value, message)
    return outcome


def run_cases(
    declaration: TestDeclaration,
    entries: Sequence[TestCaseEntry] | None = None,
) -> list[CaseOutcome]:
    """Dispatch every entry of ``declaration`` (generating them if not given)."""

    cases = generate_cases(declaration) if entries is None else entries
    return [dispatch(declaration, entry) for entry in cases]


def run_declarations(declarations: Iterable[TestDeclaration]) -> list[CaseOutcome]:
    outcomes: list[CaseOutcome] = []
    for declaration in declarations:
        outcomes.extend(run_cases(declaration))
    return outcomes
