from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from batchlog.core.buffer import EventBuffer
from batchlog.core.events import LogEvent
from batchlog.plugins.formatters import truncate_message

pytestmark = pytest.mark.property

events = st.lists(
    st.builds(
        LogEvent,
        message=st.text(max_size=40),
        timestamp=st.integers(min_value=0, max_value=4_102_444_800_000),
    ),
    max_size=200,
)


@given(items=events, batch=st.integers(min_value=1, max_value=64))
@settings(max_examples=200)
def test_drain_returns_enqueued_events_in_order(
    items: list[LogEvent], batch: int
) -> None:
    buf: EventBuffer[LogEvent] = EventBuffer()
    for item in items:
        assert buf.try_enqueue(item)

    drained: list[LogEvent] = []
    while True:
        chunk = buf.drain(batch)
        assert len(chunk) <= batch
        if not chunk:
            break
        drained.extend(chunk)
    assert drained == items


@given(
    capacity=st.integers(min_value=1, max_value=50),
    count=st.integers(min_value=0, max_value=120),
)
@settings(max_examples=200)
def test_size_never_exceeds_capacity(capacity: int, count: int) -> None:
    buf: EventBuffer[int] = EventBuffer(capacity=capacity)
    results = [buf.try_enqueue(i) for i in range(count)]
    assert buf.qsize() == min(capacity, count)
    assert results.count(False) == max(0, count - capacity)
    assert buf.drain(count + 1) == list(range(min(capacity, count)))


@given(
    text=st.text(min_size=1, max_size=400),
    max_length=st.integers(min_value=7, max_value=300),
)
@settings(max_examples=300)
def test_truncation_bounds_length_and_keeps_prefix(
    text: str, max_length: int
) -> None:
    marker = " (...)"
    out = truncate_message(text, max_length, marker)
    if len(text) <= max_length:
        assert out == text
    else:
        assert len(out) == max_length
        assert out.endswith(marker)
        assert out[: max_length - len(marker)] == text[: max_length - len(marker)]
