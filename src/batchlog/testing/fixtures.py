"""
Pytest fixtures for batchlog.

Register with ``pytest_plugins = ("batchlog.testing.fixtures",)``.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pytest

from ..core import diagnostics
from ..core import shutdown as _shutdown
from ..core.events import DestinationIdentity
from ..core.handler import BatchingHandler
from ..metrics.metrics import MetricsCollector
from .adapters import RecordingAdapter


@pytest.fixture
def captured_diagnostics() -> Generator[list[dict[str, Any]], None, None]:
    """Collect diagnostics payloads at every level instead of writing stderr."""
    captured: list[dict[str, Any]] = []
    diagnostics.configure(enabled=True, level="DEBUG")
    diagnostics.set_writer_for_tests(captured.append)
    yield captured
    diagnostics._reset_for_tests()


@pytest.fixture
def destination() -> DestinationIdentity:
    return DestinationIdentity(group_name="/test/group", stream_name="stream-1")


@pytest.fixture
def recording_adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def handler_factory(
    destination: DestinationIdentity,
) -> Generator[Any, None, None]:
    """Build handlers that are always shut down at teardown.

    Defaults keep the schedule effectively idle (long period) so tests drive
    publishing explicitly unless they ask for a short period.
    """
    created: list[BatchingHandler] = []

    def _make(adapter: Any = None, **kwargs: Any) -> BatchingHandler:
        kwargs.setdefault("batch_period_seconds", 3600.0)
        kwargs.setdefault("initial_delay_seconds", 3600.0)
        kwargs.setdefault("shutdown_timeout_seconds", 2.0)
        kwargs.setdefault("metrics", MetricsCollector())
        handler = BatchingHandler(
            adapter if adapter is not None else RecordingAdapter(),
            destination,
            **kwargs,
        )
        created.append(handler)
        return handler

    yield _make
    for handler in created:
        handler.shutdown()
    _shutdown._reset_for_tests()
