"""Unit tests for BatchPublisher delivery and retry behaviour."""

from __future__ import annotations

import pytest

from batchlog.core.buffer import EventBuffer
from batchlog.core.errors import OrderingConflictError, TransportError
from batchlog.core.events import (
    DestinationIdentity,
    LogEvent,
    PublishOutcome,
    SequenceState,
)
from batchlog.core.publisher import BatchPublisher
from batchlog.metrics.metrics import MetricsCollector
from batchlog.testing import RecordingAdapter, ScriptedAdapter, create_events

DEST = DestinationIdentity(group_name="/app/prod", stream_name="web-1")


def _make_publisher(
    adapter,
    *,
    events: list[LogEvent] | None = None,
    token: str | None = "t1",
    batch_size: int = 100,
    max_attempts: int = 10,
    metrics: MetricsCollector | None = None,
) -> tuple[BatchPublisher, EventBuffer[LogEvent], SequenceState]:
    buf: EventBuffer[LogEvent] = EventBuffer()
    for event in events or []:
        buf.try_enqueue(event)
    state = SequenceState(token)
    publisher = BatchPublisher(
        buffer=buf,
        adapter=adapter,
        destination=DEST,
        state=state,
        batch_size=batch_size,
        max_attempts=max_attempts,
        metrics=metrics,
    )
    return publisher, buf, state


@pytest.mark.critical
class TestEmptyBuffer:
    async def test_no_delivery_call_and_token_unchanged(self) -> None:
        adapter = RecordingAdapter()
        publisher, _, state = _make_publisher(adapter, token="keep-me")

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.EMPTY
        assert adapter.calls == []
        assert state.token == "keep-me"


@pytest.mark.critical
class TestDelivery:
    async def test_success_stores_next_token(self) -> None:
        adapter = ScriptedAdapter(["t2"])
        events = create_events(3)
        publisher, buf, state = _make_publisher(adapter, events=events)

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.DELIVERED
        assert result.attempts == 1
        assert result.event_count == 3
        assert state.token == "t2"
        assert buf.is_empty()
        call = adapter.calls[0]
        assert call.group_name == "/app/prod"
        assert call.stream_name == "web-1"
        assert call.token == "t1"
        assert list(call.events) == events

    async def test_batch_capped_at_batch_size(self) -> None:
        adapter = RecordingAdapter()
        events = create_events(5)
        publisher, buf, _ = _make_publisher(adapter, events=events, batch_size=2)

        await publisher.publish()

        assert list(adapter.calls[0].events) == events[:2]
        assert buf.qsize() == 3
        assert publisher.pending() == 3

    async def test_none_next_token_is_stored(self) -> None:
        adapter = ScriptedAdapter([None])
        publisher, _, state = _make_publisher(adapter, events=create_events(1))

        await publisher.publish()

        assert state.token is None


@pytest.mark.critical
class TestOrderingConflicts:
    async def test_single_conflict_then_success(self) -> None:
        adapter = ScriptedAdapter([OrderingConflictError("T2"), "T3"])
        events = create_events(4)
        publisher, _, state = _make_publisher(adapter, events=events, token="T1")

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.DELIVERED
        assert result.attempts == 2
        assert len(adapter.calls) == 2
        assert [c.token for c in adapter.calls] == ["T1", "T2"]
        # Same batch resent, unchanged
        assert adapter.calls[0].events == adapter.calls[1].events
        assert list(adapter.calls[1].events) == events
        assert state.token == "T3"

    async def test_persistent_conflict_exhausts_budget(
        self, captured_diagnostics
    ) -> None:
        conflicts = [OrderingConflictError(f"E{i}") for i in range(1, 11)]
        adapter = ScriptedAdapter(conflicts)
        publisher, buf, state = _make_publisher(
            adapter, events=create_events(2), max_attempts=10
        )

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.LOST
        assert result.attempts == 10
        assert len(adapter.calls) == 10
        assert state.token == "E10"
        # Not re-queued
        assert buf.is_empty()
        assert any(
            p["level"] == "WARN" and "too many retries" in p["message"]
            for p in captured_diagnostics
        )

    async def test_last_conflict_token_wins(self) -> None:
        adapter = ScriptedAdapter(
            [OrderingConflictError("A"), OrderingConflictError("B"), "C"]
        )
        publisher, _, _ = _make_publisher(adapter, events=create_events(1))

        await publisher.publish()

        assert [c.token for c in adapter.calls] == ["t1", "A", "B"]

    @pytest.mark.parametrize("max_attempts", [1, 3])
    async def test_custom_attempt_budget(self, max_attempts: int) -> None:
        adapter = ScriptedAdapter([], default=OrderingConflictError("X"))
        publisher, _, _ = _make_publisher(
            adapter, events=create_events(1), max_attempts=max_attempts
        )

        result = await publisher.publish()

        assert result.attempts == max_attempts
        assert len(adapter.calls) == max_attempts


@pytest.mark.critical
class TestNonOrderingFailures:
    async def test_transport_error_abandons_without_retry(
        self, captured_diagnostics
    ) -> None:
        adapter = ScriptedAdapter(
            [TransportError("throttled", error_code="Throttling")]
        )
        publisher, buf, state = _make_publisher(adapter, events=create_events(3))

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.LOST
        assert result.attempts == 1
        assert len(adapter.calls) == 1
        assert state.token == "t1"
        assert buf.is_empty()
        lost = [p for p in captured_diagnostics if "lost" in p["message"]]
        assert lost and lost[0]["error_type"] == "TransportError"

    async def test_conflict_then_transport_error_keeps_corrected_token(self) -> None:
        adapter = ScriptedAdapter([OrderingConflictError("T2"), TransportError("down")])
        publisher, _, state = _make_publisher(adapter, events=create_events(1))

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.LOST
        assert result.attempts == 2
        assert state.token == "T2"

    async def test_unexpected_exception_is_contained(
        self, captured_diagnostics
    ) -> None:
        adapter = ScriptedAdapter([RuntimeError("boom")])
        publisher, _, _ = _make_publisher(adapter, events=create_events(2))

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.LOST
        assert "RuntimeError" in (result.reason or "")

    async def test_failure_does_not_block_next_batch(self) -> None:
        adapter = ScriptedAdapter([TransportError("down"), "t2"])
        events = create_events(4)
        publisher, _, state = _make_publisher(adapter, events=events, batch_size=2)

        first = await publisher.publish()
        second = await publisher.publish()

        assert first.outcome is PublishOutcome.LOST
        assert second.outcome is PublishOutcome.DELIVERED
        assert list(adapter.calls[1].events) == events[2:]
        assert state.token == "t2"

    async def test_drain_failure_is_contained(self, captured_diagnostics) -> None:
        class _BrokenBuffer(EventBuffer[LogEvent]):
            def drain(self, max_count: int) -> list[LogEvent]:
                raise RuntimeError("drain broke")

        adapter = RecordingAdapter()
        publisher = BatchPublisher(
            buffer=_BrokenBuffer(),
            adapter=adapter,
            destination=DEST,
            state=SequenceState(),
            batch_size=10,
        )

        result = await publisher.publish()

        assert result.outcome is PublishOutcome.LOST
        assert adapter.calls == []
        assert any(p["level"] == "ERROR" for p in captured_diagnostics)


class TestMetrics:
    async def test_counters_track_attempts_and_outcomes(self) -> None:
        metrics = MetricsCollector(enabled=True)
        adapter = ScriptedAdapter(
            [OrderingConflictError("T2"), "T3", TransportError("down")]
        )
        publisher, _, _ = _make_publisher(
            adapter, events=create_events(4), batch_size=2, metrics=metrics
        )

        await publisher.publish()
        await publisher.publish()

        snap = metrics.snapshot()
        assert snap.delivery_attempts == 3
        assert snap.ordering_conflicts == 1
        assert snap.batches_delivered == 1
        assert snap.batches_lost == 1
        assert snap.events_delivered == 2
        assert snap.events_lost == 2
        assert metrics.registry is not None
        value = metrics.registry.get_sample_value(
            "batchlog_batches_total", {"result": "delivered"}
        )
        assert value == 1.0


class TestValidation:
    @pytest.mark.parametrize("field", ["batch_size", "max_attempts"])
    def test_rejects_non_positive(self, field: str) -> None:
        kwargs = {"batch_size": 10, "max_attempts": 10, field: 0}
        with pytest.raises(ValueError):
            BatchPublisher(
                buffer=EventBuffer(),
                adapter=RecordingAdapter(),
                destination=DEST,
                state=SequenceState(),
                **kwargs,
            )
