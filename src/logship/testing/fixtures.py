"""
Pytest fixtures for logship tests.

Register with ``pytest_plugins = ("logship.testing.fixtures",)``.
"""

from __future__ import annotations

from typing import Any, Iterator

import pytest

from ..core import diagnostics
from .mocks import CapturingMirror, InMemoryLogsClient


@pytest.fixture
def memory_client() -> InMemoryLogsClient:
    return InMemoryLogsClient()


@pytest.fixture
def capturing_mirror() -> CapturingMirror:
    return CapturingMirror()


@pytest.fixture
def captured_diagnostics() -> Iterator[list[dict[str, Any]]]:
    """Enable diagnostics and collect every payload emitted during the test."""
    captured: list[dict[str, Any]] = []
    diagnostics.force_enabled(True)
    diagnostics.set_writer_for_tests(captured.append)
    yield captured
    diagnostics._reset_for_tests()
