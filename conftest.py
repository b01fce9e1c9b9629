"""Root conftest.py for the benchlink monorepo.

Puts every package's ``src`` directory on the import path and marks tests
by what stands in for the hardware: ``uses_mock`` for tests that patch
pyserial/pyvisa or build mocks, ``uses_emulator`` for tests that drive an
in-process instrument emulator.
"""

from __future__ import annotations

import ast
import inspect
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
for pkg_dir in sorted(PROJECT_ROOT.glob("benchlink-*/src")):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "uses_mock: Test uses mocking (auto-detected or manually marked)",
    )
    config.addinivalue_line(
        "markers",
        "uses_emulator: Test drives an in-process instrument emulator (auto-detected)",
    )
    config.addinivalue_line(
        "markers",
        "hardware: Test requires a real instrument on a serial port",
    )


class StandInDetector(ast.NodeVisitor):
    """AST visitor recording mock and emulator usage in a test function."""

    MOCK_NAMES = frozenset({"MagicMock", "Mock", "patch", "create_autospec", "PropertyMock"})

    def __init__(self) -> None:
        self.uses_mock = False
        self.uses_emulator = False

    def _check_name(self, name: str) -> None:
        if name in self.MOCK_NAMES or name.startswith("_make_mock"):
            self.uses_mock = True
        lowered = name.lower()
        if "emulator" in lowered or lowered.startswith(("make_8500", "make_2831e", "_emulated")):
            self.uses_emulator = True

    def visit_Call(self, node: ast.Call) -> None:
        if isinstance(node.func, ast.Name):
            self._check_name(node.func.id)
        elif isinstance(node.func, ast.Attribute):
            self._check_name(node.func.attr)
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        for arg in node.args.args:
            if "mock" in arg.arg.lower():
                self.uses_mock = True
        self.generic_visit(node)


def _detect_stand_ins(item: Item) -> StandInDetector:
    """Analyze a test function's source for mocks and emulators."""
    detector = StandInDetector()
    obj = getattr(item, "obj", None)
    if obj is None:
        return detector
    try:
        source = inspect.getsource(obj)
    except (OSError, TypeError):
        return detector
    try:
        detector.visit(ast.parse(textwrap.dedent(source)))
    except SyntaxError:
        return detector
    return detector


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Auto-detect and mark tests that use mocks or emulators."""
    for item in items:
        detector = _detect_stand_ins(item)
        if detector.uses_mock and not item.get_closest_marker("uses_mock"):
            item.add_marker(pytest.mark.uses_mock)
        if detector.uses_emulator and not item.get_closest_marker("uses_emulator"):
            item.add_marker(pytest.mark.uses_emulator)


def pytest_report_header(config: Config) -> list[str]:
    """Add coverage mode info to pytest header."""
    lines = ["benchlink monorepo test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock/emulator detection")
    return lines
