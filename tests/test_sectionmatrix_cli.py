from __future__ import annotations

import json
from pathlib import Path

import pytest

from sectionmatrix.cli import main
from sectionmatrix.errors import Err, MatrixError

SAMPLE = '''
from sectionmatrix import Failure, Fixture, matrix_test


class Stack(Fixture):
    def __init__(self):
        self.items = []


class Offline(Fixture):
    @classmethod
    def prepare(cls):
        return Failure("offline")


@matrix_test(fixture=Stack, parameters={"n": [1, 2]})
def check_push(stack, n, context):
    for i in range(n):
        stack.items.append(i)

    @context.section
    def has_items():
        assert len(stack.items) == n

    @context.section("pop shrinks")
    def pops():
        stack.items.pop()
        assert len(stack.items) == n - 1


@matrix_test(fixture=Offline)
def check_remote(conn):
    raise AssertionError("never reached")
'''


def write_module(tmp_path: Path, name: str) -> Path:
    path = tmp_path / f"{name}.py"
    path.write_text(SAMPLE, encoding="utf-8")
    return path


def test_collect_lists_case_names(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    write_module(tmp_path, "cli_sample_collect")

    exit_code = main(["collect", "cli_sample_collect"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == [
        "check_push::input_0::has_items",
        "check_push::input_0::pop shrinks",
        "check_push::input_1::has_items",
        "check_push::input_1::pop shrinks",
        "check_remote",
    ]


def test_collect_jsonl_to_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    path = write_module(tmp_path, "cli_sample_jsonl")
    out_path = tmp_path / "cases.jsonl"

    exit_code = main(["collect", str(path), "--format", "jsonl", "--out", str(out_path)])

    assert exit_code == 0
    records = [json.loads(line) for line in out_path.read_text(encoding="utf-8").splitlines()]
    assert len(records) == 5
    assert records[1] == {
        "name": "check_push::input_0::pop shrinks",
        "test": "check_push",
        "binding": {"n": "1"},
        "path": [1],
        "sections": ["pop shrinks"],
    }


def test_run_reports_outcomes_and_exit_code(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    write_module(tmp_path, "cli_sample_run")

    exit_code = main(["run", "cli_sample_run"])

    lines = capsys.readouterr().out.splitlines()
    assert exit_code == 1
    assert lines[0] == "PASSED  check_push::input_0::has_items"
    assert lines[4].startswith("ERROR   check_remote (FIXTURE_PREPARATION")
    assert lines[-1] == "4 passed, 1 failed"


def test_run_single_reference_jsonl(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    write_module(tmp_path, "cli_sample_ref")

    exit_code = main(["run", "cli_sample_ref:check_push", "--format", "jsonl"])

    records = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert exit_code == 0
    assert [record["status"] for record in records] == ["passed"] * 4
    assert records[3]["sections"] == ["pop shrinks"]


def test_config_table_changes_separator(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    (tmp_path / "pyproject.toml").write_text('[tool.sectionmatrix]\nname_separator = "/"\n', encoding="utf-8")
    (tmp_path / "cli_sample_sep.py").write_text(
        "def check_value(value):\n    assert value\n", encoding="utf-8"
    )
    decl_path = tmp_path / "decl.yaml"
    decl_path.write_text(
        "tests:\n  - test: cli_sample_sep:check_value\n    parameters:\n      value: [1, 2]\n",
        encoding="utf-8",
    )

    exit_code = main(["collect", "--declarations", str(decl_path)])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["check_value/input_0", "check_value/input_1"]


def test_nothing_to_do_is_an_error(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(MatrixError) as exc:
        main(["collect"])

    assert exc.value.code is Err.INVALID_DECLARATION


def test_config_applies_to_decorated_module_targets(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    config = tmp_path / "matrix.toml"
    config.write_text('[tool.sectionmatrix]\nname_separator = "/"\n', encoding="utf-8")
    write_module(tmp_path, "cli_sample_config")

    exit_code = main(["--config", str(config), "collect", "cli_sample_config:check_push"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == [
        "check_push/input_0/has_items",
        "check_push/input_0/pop shrinks",
        "check_push/input_1/has_items",
        "check_push/input_1/pop shrinks",
    ]
