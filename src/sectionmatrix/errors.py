from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class Err(Enum):
    UNKNOWN_PARAMETER = auto()
    DUPLICATE_PARAMETER = auto()
    UNBOUND_PARAMETER = auto()
    MISSING_FIXTURE_ARGUMENT = auto()
    INVALID_FIXTURE = auto()
    INVALID_AXIS = auto()
    CONDITIONAL_SECTION = auto()
    MISSING_SOURCE = auto()
    INVALID_DECLARATION = auto()
    NO_ACTIVE_CONTEXT = auto()
    UNBALANCED_CONTEXT = auto()
    FIXTURE_PREPARATION = auto()


@dataclass(eq=False)
class MatrixError(Exception):
    """Structured error raised while declaring, generating or dispatching tests."""

    code: Err
    ctx: dict[str, Any] | None = None
    cause: Exception | None = None

    def __post_init__(self) -> None:
        if self.ctx is None:
            self.ctx = {}
        if self.cause is not None:
            self.__cause__ = self.cause
        super().__init__(self.code.name)

    def __str__(self) -> str:
        parts = [self.code.name]
        if self.ctx:
            parts.append(", ".join(f"{k}={v!r}" for k, v in self.ctx.items()))
        return ": ".join(parts)


class FixturePreparationError(MatrixError):
    """Raised when a fixture's ``prepare`` fails for one generated case."""

    def __init__(self, *, fixture: str, reason: str, cause: Exception | None = None):
        super().__init__(
            Err.FIXTURE_PREPARATION,
            ctx={"fixture": fixture, "reason": reason},
            cause=cause,
        )
