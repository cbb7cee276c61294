"""Pytest configuration and fixtures

Provides shared fixtures for all tests: a fresh settings cache per test,
an engine over the built-in generators, and a controllable clock for
attempt and session tests.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from mathgen.config import reset_settings  # noqa: E402
from mathgen.math_engine.engine import MathEngine  # noqa: E402
from mathgen.math_engine.registry import build_registry  # noqa: E402
from mathgen.math_engine.solver import Solver  # noqa: E402
from mathgen.math_engine.validator import AnswerValidator  # noqa: E402


@pytest.fixture(scope="function", autouse=True)
def fresh_settings(monkeypatch):
    """
    Give every test default settings.

    MATHGEN_* variables from the developer's shell are removed and the
    cached Settings are dropped before and after the test.
    """
    for key in list(os.environ):
        if key.startswith("MATHGEN_") and not key.startswith("MATHGEN_LOG"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="session")
def registry():
    """Registry holding every built-in generator."""
    return build_registry()


@pytest.fixture(scope="session")
def solver():
    return Solver()


@pytest.fixture(scope="function")
def validator():
    return AnswerValidator()


@pytest.fixture(scope="function")
def engine(registry, solver):
    """Engine without an AI source."""
    return MathEngine(registry=registry, solver=solver)


class ManualClock:
    """A clock tests move forward by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(scope="function")
def clock():
    return ManualClock(datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc))
