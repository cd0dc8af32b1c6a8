"""Parameter matrices and independently runnable nested sections for tests."""

from .config import Settings, load_settings
from .context import Context, SectionPath, section
from .declaration import TestDeclaration, declare, matrix_test
from .dispatcher import dispatch, run_cases
from .errors import Err, FixturePreparationError, MatrixError
from .fixtures import Fixture, LifecycleFixture
from .generator import generate_cases
from .loader import load_declarations
from .matrix import expand_bindings
from .models import AxisKind, AxisSpec, ParameterBinding, SectionNode, SectionTree, TestCaseEntry
from .result import CaseOutcome, CaseStatus, Failure
from .sections import discover_function_sections, discover_sections

__all__ = [
    "AxisKind",
    "AxisSpec",
    "CaseOutcome",
    "CaseStatus",
    "Context",
    "Err",
    "Failure",
    "Fixture",
    "FixturePreparationError",
    "LifecycleFixture",
    "MatrixError",
    "ParameterBinding",
    "SectionNode",
    "SectionPath",
    "SectionTree",
    "Settings",
    "TestCaseEntry",
    "TestDeclaration",
    "declare",
    "discover_function_sections",
    "discover_sections",
    "dispatch",
    "expand_bindings",
    "generate_cases",
    "load_declarations",
    "load_settings",
    "matrix_test",
    "run_cases",
    "section",
]
