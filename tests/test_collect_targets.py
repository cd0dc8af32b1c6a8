from __future__ import annotations

from pathlib import Path

import pytest

from sectionmatrix.collect import collect, collect_module, import_module, import_object
from sectionmatrix.errors import Err, MatrixError

MODULE = '''
from sectionmatrix import matrix_test


@matrix_test(parameters={"a": [1, 2]})
def check_first(a):
    pass


def check_plain():
    pass


@matrix_test()
def check_second():
    pass
'''


@pytest.fixture()
def module_name(tmp_path: Path, monkeypatch) -> str:
    monkeypatch.syspath_prepend(str(tmp_path))
    (tmp_path / "collect_sample_mod.py").write_text(MODULE, encoding="utf-8")
    return "collect_sample_mod"


def test_collect_module_in_definition_order(module_name: str) -> None:
    declarations = collect_module(import_module(module_name))

    assert [declaration.name for declaration in declarations] == ["check_first", "check_second"]


def test_collect_single_reference(module_name: str) -> None:
    (declaration,) = collect(f"{module_name}:check_first")

    assert declaration.parameter_names == ("a",)


def test_collect_undeclared_reference_is_an_error(module_name: str) -> None:
    with pytest.raises(MatrixError) as exc:
        collect(f"{module_name}:check_plain")

    assert exc.value.code is Err.INVALID_DECLARATION


def test_collect_from_file_path(tmp_path: Path) -> None:
    path = tmp_path / "collect_by_path.py"
    path.write_text(MODULE, encoding="utf-8")

    assert [declaration.name for declaration in collect(str(path))] == ["check_first", "check_second"]


def test_import_object_errors() -> None:
    assert import_object("builtins:int") is int
    assert import_object("os.path:join.__name__") == "join"

    with pytest.raises(MatrixError) as exc:
        import_object("builtins")
    assert exc.value.code is Err.INVALID_DECLARATION

    with pytest.raises(MatrixError):
        import_object("builtins:no_such_name")

    with pytest.raises(MatrixError):
        import_module("definitely_not_a_module_xyz")
