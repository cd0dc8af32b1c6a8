"""Declaration files: describing tests in YAML or JSON.

A declaration file lists tests by import reference::

    tests:
      - test: package.module:test_insert
        fixture: package.module:Database
        parameters:
          a: [1, 2, 5]
          b: ["3", "4"]
        type_parameters:
          kind: ["builtins:int", "builtins:str"]
        const_parameters:
          size: [1, 2]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml

from sectionmatrix.collect import import_object
from sectionmatrix.config import DEFAULT_SETTINGS, Settings
from sectionmatrix.declaration import TestDeclaration, declare
from sectionmatrix.errors import Err, MatrixError

_KNOWN_KEYS = {"test", "name", "fixture", "parameters", "type_parameters", "const_parameters"}


def _load_mapping(data: Any, *, path: Path) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    raise MatrixError(
        Err.INVALID_DECLARATION,
        ctx={"path": str(path), "error": "top-level must be mapping"},
    )


def _parse_file(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    raw = path.read_text(encoding="utf-8")
    if suffix in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise MatrixError(
                Err.INVALID_DECLARATION,
                ctx={"path": str(path), "error": "invalid YAML"},
                cause=exc,
            )
        return _load_mapping(data or {}, path=path)
    if suffix == ".json":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MatrixError(
                Err.INVALID_DECLARATION,
                ctx={"path": str(path), "error": "invalid JSON"},
                cause=exc,
            )
        return _load_mapping(data, path=path)
    raise MatrixError(
        Err.INVALID_DECLARATION,
        ctx={"path": str(path), "error": f"unsupported declaration format {suffix!r}"},
    )


def _axis_section(entry: Mapping[str, Any], key: str, *, source: str) -> Mapping[str, Any] | None:
    section = entry.get(key)
    if section is None:
        return None
    if not isinstance(section, Mapping):
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"path": source, "test": entry.get("test"), "error": f"{key} must be mapping"},
        )
    return section


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def parse_declaration_mapping(
    data: Mapping[str, Any],
    *,
    source: Path | str = "<memory>",
    settings: Settings = DEFAULT_SETTINGS,
) -> list[TestDeclaration]:
    """Build declarations from an already-parsed declaration mapping."""

    source = str(source)
    tests = data.get("tests")
    if not isinstance(tests, list):
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"path": source, "error": "tests must be a list"},
        )

    declarations: list[TestDeclaration] = []
    for entry in tests:
        if not isinstance(entry, Mapping) or not isinstance(entry.get("test"), str):
            raise MatrixError(
                Err.INVALID_DECLARATION,
                ctx={"path": source, "error": "each test needs a 'test' reference"},
            )
        unknown = sorted(set(entry) - _KNOWN_KEYS)
        if unknown:
            raise MatrixError(
                Err.INVALID_DECLARATION,
                ctx={"path": source, "test": entry["test"], "error": f"unknown keys {unknown}"},
            )

        fn = import_object(entry["test"])
        fixture = import_object(entry["fixture"]) if entry.get("fixture") else None

        type_parameters = _axis_section(entry, "type_parameters", source=source)
        if type_parameters is not None:
            type_parameters = {
                name: [import_object(ref) if isinstance(ref, str) else ref for ref in refs]
                if isinstance(refs, list)
                else refs
                for name, refs in type_parameters.items()
            }

        const_parameters = _axis_section(entry, "const_parameters", source=source)
        if const_parameters is not None:
            const_parameters = {
                name: [_freeze(v) for v in values] if isinstance(values, list) else values
                for name, values in const_parameters.items()
            }

        declarations.append(
            declare(
                fn,
                fixture=fixture,
                parameters=_axis_section(entry, "parameters", source=source),
                type_parameters=type_parameters,
                const_parameters=const_parameters,
                settings=settings,
                name=entry.get("name"),
            )
        )
    return declarations


def load_declarations(path: Path | str, *, settings: Settings = DEFAULT_SETTINGS) -> list[TestDeclaration]:
    """Load a YAML or JSON declaration file."""

    decl_path = Path(path)
    if not decl_path.is_file():
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"path": str(decl_path), "error": "declaration file not found"},
        )
    data = _parse_file(decl_path)
    return parse_declaration_mapping(data, source=decl_path, settings=settings)
