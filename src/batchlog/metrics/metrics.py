"""
Delivery metrics for batchlog.

Implements minimal Prometheus-compatible counters and a publish latency
histogram for the buffer and the batch publisher.

Design goals:
- Callable from any producer thread without blocking (short-held lock)
- Zero global state; instances are handler-scoped
- In-memory counters always tracked; Prometheus exporters only when enabled
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class PipelineMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    events_enqueued: int = 0
    events_dropped: int = 0
    events_delivered: int = 0
    events_lost: int = 0
    batches_delivered: int = 0
    batches_lost: int = 0
    delivery_attempts: int = 0
    ordering_conflicts: int = 0


class MetricsCollector:
    """Handler-scoped metrics collector.

    When disabled, only the in-memory ``PipelineMetrics`` counters are kept.
    """

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = threading.Lock()
        self._state = PipelineMetrics()

        self._c_enqueued: Any | None = None
        self._c_dropped: Any | None = None
        self._c_events_out: Any | None = None
        self._c_batches: Any | None = None
        self._c_attempts: Any | None = None
        self._c_conflicts: Any | None = None
        self._h_publish_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry to avoid global duplication across handlers
            self._registry = CollectorRegistry()
            self._c_enqueued = Counter(
                "batchlog_events_enqueued_total",
                "Total number of events accepted into the buffer",
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "batchlog_events_dropped_total",
                "Total number of events rejected before buffering",
                registry=self._registry,
            )
            self._c_events_out = Counter(
                "batchlog_events_published_total",
                "Events leaving the buffer, by delivery result",
                ["result"],
                registry=self._registry,
            )
            self._c_batches = Counter(
                "batchlog_batches_total",
                "Batches leaving the buffer, by delivery result",
                ["result"],
                registry=self._registry,
            )
            self._c_attempts = Counter(
                "batchlog_delivery_attempts_total",
                "Calls made to the delivery adapter",
                registry=self._registry,
            )
            self._c_conflicts = Counter(
                "batchlog_ordering_conflicts_total",
                "Sequence token conflicts reported by the destination",
                registry=self._registry,
            )
            self._h_publish_latency = Histogram(
                "batchlog_publish_seconds",
                "Latency of one non-empty publisher run",
                buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    def record_enqueued(self) -> None:
        with self._lock:
            self._state.events_enqueued += 1
        if self._c_enqueued is not None:
            self._c_enqueued.inc()

    def record_dropped(self, count: int = 1) -> None:
        with self._lock:
            self._state.events_dropped += count
        if self._c_dropped is not None:
            self._c_dropped.inc(count)

    def record_attempt(self) -> None:
        with self._lock:
            self._state.delivery_attempts += 1
        if self._c_attempts is not None:
            self._c_attempts.inc()

    def record_conflict(self) -> None:
        with self._lock:
            self._state.ordering_conflicts += 1
        if self._c_conflicts is not None:
            self._c_conflicts.inc()

    def record_batch(
        self,
        *,
        delivered: bool,
        event_count: int,
        latency_seconds: float | None = None,
    ) -> None:
        result = "delivered" if delivered else "lost"
        with self._lock:
            if delivered:
                self._state.batches_delivered += 1
                self._state.events_delivered += event_count
            else:
                self._state.batches_lost += 1
                self._state.events_lost += event_count
        if self._c_batches is not None:
            self._c_batches.labels(result=result).inc()
        if self._c_events_out is not None:
            self._c_events_out.labels(result=result).inc(event_count)
        if latency_seconds is not None and self._h_publish_latency is not None:
            self._h_publish_latency.observe(latency_seconds)

    def snapshot(self) -> PipelineMetrics:
        with self._lock:
            return replace(self._state)
