"""Outcomes of running generated cases."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Failure:
    """Explicit failure value.

    A test body (or a fixture's ``prepare``) may return a ``Failure`` instead
    of raising to report that it did not succeed.
    """

    message: str = ""

    @classmethod
    def from_error(cls, exc: BaseException) -> "Failure":
        text = str(exc)
        return cls(f"{type(exc).__name__}: {text}" if text else type(exc).__name__)

    def __str__(self) -> str:
        return self.message


class CaseStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    # Fixture preparation failed; the body never ran.
    ERROR = "error"


class CaseOutcome(BaseModel):
    name: str
    status: CaseStatus
    message: str | None = None
    duration_s: float = Field(0.0, ge=0.0)
    sections: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def ok(self) -> bool:
        return self.status is CaseStatus.PASSED
