"""Runtime settings for declaration, generation and dispatch.

Settings are resolved once per CLI invocation (or explicitly by callers):
defaults, then the ``[tool.sectionmatrix]`` table of a ``pyproject.toml``,
then ``SECTIONMATRIX_*`` environment variables.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sectionmatrix.errors import Err, MatrixError

ENV_PREFIX = "SECTIONMATRIX_"


class Settings(BaseModel):
    """Knobs shared by the section discovery, naming and dispatch layers.

    Attributes:
        section_markers: Decorator names recognised as section markers, either
            bare (``@section``) or as an attribute (``@context.section``).
        context_parameter: Name of the test parameter that receives the
            per-case :class:`~sectionmatrix.context.Context`.
        name_separator: Separator between test, binding and section segments
            of a generated case name.
        log_level: Level handed to ``logging.basicConfig`` by the CLI.
    """

    section_markers: tuple[str, ...] = ("section",)
    context_parameter: str = "context"
    name_separator: str = "::"
    log_level: str = Field("WARNING")

    model_config = ConfigDict(frozen=True)

    @field_validator("section_markers", mode="before")
    @classmethod
    def _split_markers(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @field_validator("section_markers")
    @classmethod
    def _require_markers(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one section marker is required")
        return value

    @field_validator("name_separator")
    @classmethod
    def _check_separator(cls, value: str) -> str:
        if not value or "#" in value or any(ch.isalnum() or ch == "_" for ch in value):
            raise ValueError("name_separator must be non-empty punctuation other than '#'")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


DEFAULT_SETTINGS = Settings()


def _read_pyproject(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        data = tomllib.load(fh)
    section = data.get("tool", {}).get("sectionmatrix", {})
    if not isinstance(section, Mapping):
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"path": str(path), "error": "[tool.sectionmatrix] must be a table"},
        )
    return section


def load_settings(
    pyproject: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve :class:`Settings` from ``pyproject.toml`` and the environment."""

    values: dict[str, Any] = {}
    if pyproject is not None:
        values.update(_read_pyproject(Path(pyproject)))

    env = os.environ if env is None else env
    for field in Settings.model_fields:
        key = ENV_PREFIX + field.upper()
        if key in env:
            values[field] = env[key]

    try:
        return Settings(**values)
    except ValidationError as exc:
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"error": "invalid settings", "detail": exc.errors(include_url=False)},
            cause=exc,
        )
