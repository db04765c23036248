"""
Root pytest configuration.
"""

from __future__ import annotations

import os
from collections.abc import Generator

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

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


# Register batchlog testing fixtures for all tests
pytest_plugins = ("batchlog.testing.fixtures",)


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset the diagnostics gate and writer around each test.

    The diagnostics module caches the ``internal_logging_enabled`` setting at
    first use; without a reset tests would inherit each other's state.
    Diagnostics are silenced unless a test captures them explicitly.
    """
    import batchlog.core.diagnostics as diag

    diag._reset_for_tests()
    diag.configure(enabled=False)
    yield
    diag._reset_for_tests()


@pytest.fixture(autouse=True)
def reset_shutdown_registry() -> Generator[None, None, None]:
    from batchlog.core import shutdown

    shutdown._reset_for_tests()
    yield
    shutdown._reset_for_tests()
