import pytest

from sectionmatrix.config import DEFAULT_SETTINGS, Settings, load_settings
from sectionmatrix.errors import Err, MatrixError


def test_defaults() -> None:
    assert DEFAULT_SETTINGS.section_markers == ("section",)
    assert DEFAULT_SETTINGS.context_parameter == "context"
    assert DEFAULT_SETTINGS.name_separator == "::"
    assert DEFAULT_SETTINGS.log_level == "WARNING"


def test_markers_accept_comma_separated_string() -> None:
    assert Settings(section_markers="section, subtest").section_markers == ("section", "subtest")


def test_pyproject_then_environment(tmp_path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        '[tool.sectionmatrix]\nname_separator = "/"\nlog_level = "info"\ncontext_parameter = "ctx"\n'
    )

    settings = load_settings(pyproject, env={"SECTIONMATRIX_CONTEXT_PARAMETER": "case"})

    assert settings.name_separator == "/"
    assert settings.log_level == "INFO"
    assert settings.context_parameter == "case"


def test_missing_pyproject_uses_defaults(tmp_path) -> None:
    assert load_settings(tmp_path / "absent.toml", env={}) == DEFAULT_SETTINGS


def test_invalid_settings_raise_matrix_error() -> None:
    with pytest.raises(MatrixError) as exc:
        load_settings(env={"SECTIONMATRIX_SECTION_MARKERS": " , "})

    assert exc.value.code is Err.INVALID_DECLARATION
    assert isinstance(exc.value.cause, Exception)


@pytest.mark.parametrize("separator", ["", "#", "_", "x", "::#"])
def test_name_separator_must_be_reserved_punctuation(separator) -> None:
    with pytest.raises(ValueError):
        Settings(name_separator=separator)
