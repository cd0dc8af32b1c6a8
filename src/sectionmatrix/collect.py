"""Locating declared tests in modules and files."""

from __future__ import annotations

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from sectionmatrix.declaration import TestDeclaration, declaration_of
from sectionmatrix.errors import Err, MatrixError


def import_module(target: str) -> ModuleType:
    """Import ``target`` given either a dotted module name or a ``.py`` path."""

    path = Path(target)
    if path.suffix == ".py":
        if not path.exists():
            raise MatrixError(Err.INVALID_DECLARATION, ctx={"path": str(path), "error": "file not found"})
        module_name = f"_sectionmatrix_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise MatrixError(Err.INVALID_DECLARATION, ctx={"path": str(path), "error": "cannot import file"})
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module
    try:
        return importlib.import_module(target)
    except ImportError as exc:
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"module": target, "error": "module not importable"},
            cause=exc,
        )


def import_object(reference: str) -> Any:
    """Resolve ``"package.module:attribute"`` (attribute may be dotted)."""

    if ":" not in reference:
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"reference": reference, "error": "reference must be MODULE:ATTRIBUTE"},
        )
    module_part, attr_part = reference.split(":", 1)
    obj: Any = import_module(module_part)
    for attr in attr_part.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as exc:
            raise MatrixError(
                Err.INVALID_DECLARATION,
                ctx={"reference": reference, "error": f"attribute {attr!r} not found"},
                cause=exc,
            )
    return obj


def collect_module(module: ModuleType) -> list[TestDeclaration]:
    """Declarations attached by ``@matrix_test`` in definition order."""

    declarations: list[TestDeclaration] = []
    for value in vars(module).values():
        declaration = declaration_of(value)
        if declaration is not None and getattr(value, "__module__", None) == module.__name__:
            declarations.append(declaration)
    return declarations


def collect(target: str) -> list[TestDeclaration]:
    """Collect from a module/file, or a single ``MODULE:TEST`` reference."""

    if ":" in target and not target.endswith(".py"):
        obj = import_object(target)
        declaration = declaration_of(obj)
        if declaration is None:
            raise MatrixError(
                Err.INVALID_DECLARATION,
                ctx={"reference": target, "error": "object is not a declared test"},
            )
        return [declaration]
    return collect_module(import_module(target))
