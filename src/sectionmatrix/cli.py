"""Command-line entry point for listing and running generated cases."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, TextIO

from sectionmatrix.collect import collect
from sectionmatrix.config import Settings, load_settings
from sectionmatrix.declaration import TestDeclaration, with_settings
from sectionmatrix.dispatcher import run_cases
from sectionmatrix.errors import Err, MatrixError
from sectionmatrix.generator import generate_cases
from sectionmatrix.loader import load_declarations
from sectionmatrix.models import TestCaseEntry
from sectionmatrix.result import CaseOutcome

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sectionmatrix",
        description="Expand parameterized, sectioned tests into independent cases",
    )
    parser.add_argument(
        "--config",
        default="pyproject.toml",
        help="pyproject.toml holding a [tool.sectionmatrix] table (ignored if missing)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("collect", "List the generated cases without running them"),
        ("run", "Run every generated case and report outcomes"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument(
            "targets",
            nargs="*",
            help="Module name, .py file or MODULE:TEST reference",
        )
        cmd.add_argument(
            "--declarations",
            action="append",
            default=None,
            help="YAML/JSON declaration file (may be repeated)",
        )
        cmd.add_argument("--format", choices=("text", "jsonl"), default="text")
        cmd.add_argument("--out", help="Optional output path instead of stdout")

    return parser


def _gather(args: argparse.Namespace, settings: Settings) -> list[TestDeclaration]:
    declarations: list[TestDeclaration] = []
    for target in args.targets:
        declarations.extend(with_settings(decl, settings) for decl in collect(target))
    for path in args.declarations or ():
        declarations.extend(load_declarations(path, settings=settings))
    if not args.targets and not args.declarations:
        raise MatrixError(
            Err.INVALID_DECLARATION,
            ctx={"error": "nothing to do: pass a target or --declarations"},
        )
    return declarations


def _entry_record(entry: TestCaseEntry) -> dict[str, Any]:
    return {
        "name": entry.name,
        "test": entry.test,
        "binding": {key: repr(value) for key, value in entry.binding.items()},
        "path": list(entry.path),
        "sections": list(entry.section_names),
    }


def _outcome_record(outcome: CaseOutcome) -> dict[str, Any]:
    return outcome.model_dump(mode="json")


def _emit(records: Iterable[dict[str, Any]], lines: Iterable[str], fmt: str, out: TextIO) -> None:
    if fmt == "jsonl":
        for record in records:
            out.write(json.dumps(record) + "\n")
        return
    for line in lines:
        out.write(line + "\n")


def _open_out(path: str | None) -> TextIO:
    if path:
        return Path(path).open("w", encoding="utf-8")
    return sys.stdout


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    config_path = Path(args.config)
    settings = load_settings(config_path if config_path.exists() else None)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    declarations = _gather(args, settings)
    out = _open_out(args.out)
    try:
        if args.command == "collect":
            entries = [entry for decl in declarations for entry in generate_cases(decl)]
            _emit(
                (_entry_record(e) for e in entries),
                (e.name for e in entries),
                args.format,
                out,
            )
            logger.info("collected %d cases from %d tests", len(entries), len(declarations))
            return 0

        outcomes = [outcome for decl in declarations for outcome in run_cases(decl)]
        _emit(
            (_outcome_record(o) for o in outcomes),
            (
                f"{o.status.value.upper():7} {o.name}" + (f" ({o.message})" if o.message else "")
                for o in outcomes
            ),
            args.format,
            out,
        )
        failed = sum(1 for o in outcomes if not o.ok)
        if args.format == "text":
            out.write(f"{len(outcomes) - failed} passed, {failed} failed\n")
        return 1 if failed else 0
    finally:
        if out is not sys.stdout:
            out.close()


def entrypoint() -> None:  # pragma: no cover - console entry
    try:
        raise SystemExit(main())
    except MatrixError as exc:  # pragma: no cover - console behavior
        raise SystemExit(f"error: {exc}")
