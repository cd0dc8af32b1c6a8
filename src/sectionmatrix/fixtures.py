"""Fixture capability shapes understood by the dispatcher.

Two flavours are supported:

* *prepare* fixtures expose a ``prepare()`` classmethod (or any callable
  attribute) returning the instance, raising or returning a
  :class:`~sectionmatrix.result.Failure` when the resource is unavailable.
  The dispatcher invokes no teardown; an instance that is a context manager
  is entered around the body so its own ``__exit__`` releases it.
* *lifecycle* fixtures are constructed without arguments and get
  ``set_up()`` before and ``tear_down()`` after the body.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator

from sectionmatrix.errors import Err, FixturePreparationError, MatrixError
from sectionmatrix.result import Failure

logger = logging.getLogger(__name__)


class Fixture:
    """Base class for prepare-flavoured fixtures; default ``prepare`` is ``cls()``."""

    @classmethod
    def prepare(cls) -> Any:
        return cls()


class LifecycleFixture:
    """Base class for default-constructible fixtures with set-up/tear-down hooks."""

    def set_up(self) -> None:
        pass

    def tear_down(self) -> None:
        pass


class FixtureFlavor(Enum):
    PREPARE = "prepare"
    LIFECYCLE = "lifecycle"


def fixture_label(fixture: Any) -> str:
    return getattr(fixture, "__qualname__", None) or repr(fixture)


def fixture_flavor(fixture: Any) -> FixtureFlavor:
    if callable(getattr(fixture, "prepare", None)):
        return FixtureFlavor.PREPARE
    if (
        callable(fixture)
        and callable(getattr(fixture, "set_up", None))
        and callable(getattr(fixture, "tear_down", None))
    ):
        return FixtureFlavor.LIFECYCLE
    raise MatrixError(
        Err.INVALID_FIXTURE,
        ctx={
            "fixture": fixture_label(fixture),
            "error": "fixture needs prepare() or set_up()/tear_down()",
        },
    )


def _failed(fixture: Any, exc: BaseException) -> FixturePreparationError:
    return FixturePreparationError(
        fixture=fixture_label(fixture),
        reason=str(Failure.from_error(exc)),
        cause=exc if isinstance(exc, Exception) else None,
    )


@contextmanager
def provide_fixture(fixture: Any) -> Iterator[Any]:
    """Prepare ``fixture`` for one case and yield the value handed to the body.

    Preparation problems surface as :class:`FixturePreparationError` before
    anything is yielded; exceptions from the body propagate unchanged.
    """

    flavor = fixture_flavor(fixture)
    label = fixture_label(fixture)

    if flavor is FixtureFlavor.PREPARE:
        try:
            instance = fixture.prepare()
        except Exception as exc:
            raise _failed(fixture, exc)
        if isinstance(instance, Failure):
            raise FixturePreparationError(fixture=label, reason=instance.message or "prepare() failed")
        logger.debug("prepared fixture %s", label)
        if hasattr(instance, "__enter__") and hasattr(instance, "__exit__"):
            with instance as entered:
                yield entered
        else:
            yield instance
        return

    try:
        instance = fixture()
        instance.set_up()
    except Exception as exc:
        raise _failed(fixture, exc)
    logger.debug("set up fixture %s", label)
    try:
        yield instance
    except BaseException:
        try:
            instance.tear_down()
        except Exception:
            logger.warning("tear_down of %s failed after a body error", label, exc_info=True)
        raise
    instance.tear_down()
