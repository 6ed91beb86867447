"""
Root pytest configuration.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Args:
        base: Base timeout in seconds
        max_multiplier: Maximum allowed multiplier (default 5x)

    Returns:
        Scaled timeout value

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


# Register logship testing fixtures for all tests
pytest_plugins = ("logship.testing.fixtures",)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests spanning the whole reader/batcher/uploader pipeline",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take >1 second",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_cache(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Reset the diagnostics module state before and after each test.

    The diagnostics module caches ``internal_logging_enabled`` at first
    access; each test starts from a clean, disabled state.
    """
    import logship.core.diagnostics as diag

    monkeypatch.delenv("LOGSHIP_CORE__INTERNAL_LOGGING_ENABLED", raising=False)
    diag._reset_for_tests()
    yield
    diag._reset_for_tests()


@pytest.fixture
def scaled_timeout() -> Callable[[float], float]:
    """Fixture form of ``get_test_timeout`` for timing-sensitive tests."""
    return get_test_timeout
