"""
Batching handler: the capability surface producers and hosts talk to.

``should_emit``, ``submit`` and ``shutdown`` are the whole interface. Producers
may call ``submit`` from any thread; it filters, formats, truncates, stamps and
enqueues without blocking and without ever raising.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from ..metrics.metrics import MetricsCollector
from ..plugins.adapters import DeliveryAdapter
from ..plugins.formatters import BaseFormatter, truncate_message
from ..plugins.formatters.ecs import EcsFormatter
from . import diagnostics
from .buffer import EventBuffer
from .errors import FormattingError
from .events import DestinationIdentity, LogEvent, SequenceState, now_millis
from .levels import RecordFilter
from .publisher import DEFAULT_MAX_ATTEMPTS, BatchPublisher
from .scheduler import PublishScheduler, SchedulerState
from .settings import MAX_EVENTS_PER_CALL, TRUNCATION_MARKER

# Records from the engine's own loggers are never shipped (feedback loop)
INTERNAL_LOGGER_PREFIX = "batchlog"


class BatchingHandler:
    """Buffers formatted records and ships them in ordered batches."""

    def __init__(
        self,
        adapter: DeliveryAdapter,
        destination: DestinationIdentity,
        *,
        sequence_token: str | None = None,
        level: str | int = "INFO",
        max_queue_size: int | None = None,
        batch_size: int = MAX_EVENTS_PER_CALL,
        batch_period_seconds: float = 5.0,
        initial_delay_seconds: float = 0.005,
        max_message_length: int = 0,
        truncation_marker: str = TRUNCATION_MARKER,
        formatter: BaseFormatter | None = None,
        service_environment: str | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        shutdown_timeout_seconds: float = 60.0,
        metrics: MetricsCollector | None = None,
        autostart: bool = True,
    ) -> None:
        if 0 < max_message_length <= len(truncation_marker):
            raise ValueError(
                "max_message_length must be 0 or longer than the truncation marker"
            )
        self._filter = RecordFilter(level)
        self._formatter: BaseFormatter = formatter or EcsFormatter(
            service_environment=service_environment
        )
        self._max_message_length = max_message_length
        self._truncation_marker = truncation_marker
        self._destination = destination
        self._adapter = adapter
        self._metrics = metrics
        self._buffer: EventBuffer[LogEvent] = EventBuffer(max_queue_size)
        self._state = SequenceState(sequence_token)
        self._publisher = BatchPublisher(
            buffer=self._buffer,
            adapter=adapter,
            destination=destination,
            state=self._state,
            batch_size=batch_size,
            max_attempts=max_attempts,
            metrics=metrics,
        )
        self._scheduler = PublishScheduler(
            self._publisher,
            period_seconds=batch_period_seconds,
            initial_delay_seconds=initial_delay_seconds,
            shutdown_timeout_seconds=shutdown_timeout_seconds,
        )
        self._closed = False
        self._close_lock = threading.Lock()
        if autostart:
            self.start()

    @property
    def destination(self) -> DestinationIdentity:
        return self._destination

    @property
    def sequence_token(self) -> str | None:
        return self._state.token

    @property
    def threshold(self) -> int:
        return self._filter.threshold

    @property
    def buffer(self) -> EventBuffer[LogEvent]:
        return self._buffer

    @property
    def publisher(self) -> BatchPublisher:
        return self._publisher

    @property
    def scheduler(self) -> PublishScheduler:
        return self._scheduler

    @property
    def metrics(self) -> MetricsCollector | None:
        return self._metrics

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        from . import shutdown as _shutdown

        self._scheduler.start()
        _shutdown.register_handler(self)

    def should_emit(self, severity: int) -> bool:
        return self._filter.should_emit(severity)

    def submit(self, record: logging.LogRecord) -> bool:
        """Buffer ``record`` for delivery. Returns whether it was accepted."""
        if not self._filter.should_emit(record.levelno):
            return False
        if record.name.split(".", 1)[0] == INTERNAL_LOGGER_PREFIX:
            return False
        if self._closed:
            self._record_drop()
            return False
        try:
            body = self.format_message(record)
        except FormattingError as exc:
            cause = exc.__cause__
            diagnostics.warn(
                "handler",
                "record formatting failed, dropping record",
                error_type=type(cause).__name__,
                error=str(cause),
                logger=record.name,
                error_id=exc.context.error_id,
                _rate_limit_key="format",
            )
            self._record_drop()
            return False
        return self._enqueue(LogEvent(message=body, timestamp=now_millis()))

    def format_message(self, record: logging.LogRecord) -> str:
        """Render and bound ``record``; formatter failures become FormattingError."""
        try:
            text = self._formatter.format(record)
        except Exception as exc:
            raise FormattingError(
                "record formatting failed",
                cause=exc,
                formatter=getattr(self._formatter, "name", None),
                logger=record.name,
            ) from exc
        return truncate_message(
            text,
            self._max_message_length,
            self._truncation_marker,
        )

    def _enqueue(self, event: LogEvent) -> bool:
        accepted = self._buffer.try_enqueue(event)
        if self._metrics is not None:
            try:
                if accepted:
                    self._metrics.record_enqueued()
                else:
                    self._metrics.record_dropped()
            except Exception:
                pass
        return accepted

    def _record_drop(self) -> None:
        if self._metrics is not None:
            try:
                self._metrics.record_dropped()
            except Exception:
                pass

    def flush(self) -> None:
        """No-op: batches are published on the schedule and at shutdown."""
        return None

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop scheduling and flush everything buffered so far. Idempotent."""
        from . import shutdown as _shutdown

        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        diagnostics.debug(
            "handler",
            "shutting down and flushing buffered events",
            pending=self._buffer.qsize(),
        )
        try:
            self._scheduler.shutdown(timeout)
            close = getattr(self._adapter, "close", None)
            if callable(close):
                close()
        finally:
            _shutdown.unregister_handler(self)

    def __enter__(self) -> BatchingHandler:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return (
            f"BatchingHandler(group={self._destination.group_name!r}, "
            f"stream={self._destination.stream_name!r}, "
            f"state={self._scheduler.state.value})"
        )


__all__ = ["BatchingHandler", "INTERNAL_LOGGER_PREFIX", "SchedulerState"]
