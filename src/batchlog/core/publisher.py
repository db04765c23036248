"""
Batch publisher: drains one batch and delivers it through the ordering protocol.

Delivery is an explicit bounded loop over (attempt, token):

- success: store the returned token, batch delivered
- ordering conflict: adopt the token the destination expects and resend the
  same batch; once the attempt budget is spent the batch is lost
- any other failure: the batch is lost immediately, the budget is not used

A drained batch is never re-queued. Putting it back would place it behind
events enqueued after it, and the destination requires stream order.
"""

from __future__ import annotations

import time
from typing import Any

from ..metrics.metrics import MetricsCollector
from ..plugins.adapters import DeliveryAdapter
from ..plugins.utils import get_plugin_name
from . import diagnostics
from .buffer import EventBuffer
from .errors import OrderingConflictError
from .events import (
    EMPTY_RESULT,
    DestinationIdentity,
    LogEvent,
    PublishOutcome,
    PublishResult,
    SequenceState,
)

DEFAULT_MAX_ATTEMPTS = 10


class BatchPublisher:
    """Delivers batches drained from an ``EventBuffer`` to one stream."""

    def __init__(
        self,
        *,
        buffer: EventBuffer[LogEvent],
        adapter: DeliveryAdapter,
        destination: DestinationIdentity,
        state: SequenceState,
        batch_size: int,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        self._buffer = buffer
        self._adapter = adapter
        self._destination = destination
        self._state = state
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._metrics = metrics

    @property
    def state(self) -> SequenceState:
        return self._state

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def pending(self) -> int:
        """Events still waiting in the buffer."""
        return self._buffer.qsize()

    async def publish(self) -> PublishResult:
        """Drain at most one batch and deliver it. Never raises."""
        batch: list[LogEvent] = []
        try:
            batch = self._buffer.drain(self._batch_size)
            if not batch:
                return EMPTY_RESULT
            start = time.perf_counter()
            result = await self._deliver(batch)
            self._record_batch(result, time.perf_counter() - start)
            return result
        except Exception as exc:
            result = PublishResult(
                outcome=PublishOutcome.LOST,
                event_count=len(batch),
                reason=f"{type(exc).__name__}: {exc}",
            )
            self._emit(
                "error",
                "publish run failed, log events from the current batch are lost",
                error_type=type(exc).__name__,
                error=str(exc),
                events=len(batch),
            )
            if batch:
                self._record_batch(result, None)
            return result

    async def _deliver(self, batch: list[LogEvent]) -> PublishResult:
        attempt = 0
        while attempt < self._max_attempts:
            attempt += 1
            if self._metrics is not None:
                self._metrics.record_attempt()
            try:
                next_token = await self._adapter.put_batch(
                    self._destination.group_name,
                    self._destination.stream_name,
                    batch,
                    self._state.token,
                )
            except OrderingConflictError as conflict:
                # Last conflict wins: the destination's most recent expectation
                self._state.token = conflict.expected_token
                if self._metrics is not None:
                    self._metrics.record_conflict()
                self._emit(
                    "debug",
                    "sequence token rejected, retrying with expected token",
                    attempt=attempt,
                )
                continue
            except Exception as exc:
                self._emit(
                    "warn",
                    "delivery failed, log events from the current batch are lost",
                    error_type=type(exc).__name__,
                    error=str(exc),
                    attempt=attempt,
                    events=len(batch),
                )
                return PublishResult(
                    outcome=PublishOutcome.LOST,
                    attempts=attempt,
                    event_count=len(batch),
                    reason=f"{type(exc).__name__}: {exc}",
                )
            self._state.token = next_token
            return PublishResult(
                outcome=PublishOutcome.DELIVERED,
                attempts=attempt,
                event_count=len(batch),
            )

        self._emit(
            "warn",
            "too many retries, log events from the current batch are lost",
            attempts=attempt,
            events=len(batch),
        )
        return PublishResult(
            outcome=PublishOutcome.LOST,
            attempts=attempt,
            event_count=len(batch),
            reason="sequence token retries exhausted",
        )

    def _record_batch(self, result: PublishResult, latency: float | None) -> None:
        if self._metrics is None:
            return
        try:
            self._metrics.record_batch(
                delivered=result.delivered,
                event_count=result.event_count,
                latency_seconds=latency,
            )
        except Exception:
            pass

    def _emit(self, level: str, message: str, **fields: Any) -> None:
        emit = getattr(diagnostics, level)
        emit(
            "publisher",
            message,
            adapter=get_plugin_name(self._adapter),
            log_group=self._destination.group_name,
            log_stream=self._destination.stream_name,
            **fields,
        )
