"""
Lifecycle controller for the batch publisher.

One daemon thread hosts a private event loop with a single scheduling task.
That task awaits each publisher run before computing the next firing, so runs
never overlap and the sequence token always has exactly one writer.

Shutdown order:
1. stop future firings
2. join the scheduling thread (bounded), cancelling the in-flight run if the
   bound expires
3. run the publisher on the calling thread until the buffer is empty, with no
   timeout; this is the last chance to flush
"""

from __future__ import annotations

import asyncio
import threading
import time
from enum import Enum

from . import diagnostics
from .events import PublishOutcome, PublishResult
from .publisher import BatchPublisher
from .shutdown import run_coroutine_sync


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    PUBLISHING = "publishing"
    SHUTTING_DOWN = "shutting_down"
    DRAINING = "draining"
    STOPPED = "stopped"


_TERMINAL = frozenset(
    {SchedulerState.SHUTTING_DOWN, SchedulerState.DRAINING, SchedulerState.STOPPED}
)


class PublishScheduler:
    """Runs a ``BatchPublisher`` at a fixed rate on one background thread."""

    def __init__(
        self,
        publisher: BatchPublisher,
        *,
        period_seconds: float,
        initial_delay_seconds: float = 0.005,
        shutdown_timeout_seconds: float = 60.0,
        thread_name: str = "batchlog-publisher",
    ) -> None:
        if period_seconds <= 0:
            raise ValueError("period_seconds must be > 0")
        self._publisher = publisher
        self._period = float(period_seconds)
        self._initial_delay = max(0.0, float(initial_delay_seconds))
        self._shutdown_timeout = float(shutdown_timeout_seconds)
        self._thread_name = thread_name

        self._state = SchedulerState.IDLE
        self._state_lock = threading.Lock()
        self._ready = threading.Event()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._scheduled_runs = 0
        self.final_results: list[PublishResult] = []

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def scheduled_runs(self) -> int:
        """Number of completed scheduled (non-shutdown) publisher runs."""
        return self._scheduled_runs

    def start(self) -> None:
        # Thread is assigned under the lock so shutdown never sees SCHEDULED without it
        with self._state_lock:
            if self._state is not SchedulerState.IDLE:
                return
            self._state = SchedulerState.SCHEDULED
            self._thread = threading.Thread(
                target=self._thread_main,
                name=self._thread_name,
                daemon=True,
            )
            self._thread.start()
        self._ready.wait()

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop scheduling, wait for the in-flight run, then flush the buffer."""
        if timeout is None:
            timeout = self._shutdown_timeout
        with self._state_lock:
            if self._state in _TERMINAL:
                return
            self._state = SchedulerState.SHUTTING_DOWN
        self._stop_schedule(timeout)
        self._set_state(SchedulerState.DRAINING)
        self._final_drain()
        self._set_state(SchedulerState.STOPPED)

    def _set_state(self, state: SchedulerState) -> None:
        with self._state_lock:
            self._state = state

    def _transition(self, expected: SchedulerState, state: SchedulerState) -> None:
        # Scheduling task updates never overwrite a shutdown in progress
        with self._state_lock:
            if self._state is expected:
                self._state = state

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._stop_event = asyncio.Event()
        self._task = loop.create_task(self._run_schedule())
        self._ready.set()
        try:
            loop.run_until_complete(self._task)
        except asyncio.CancelledError:
            diagnostics.warn(
                "scheduler",
                "in-flight publish cancelled at shutdown, its batch is lost",
            )
        except Exception as exc:  # pragma: no cover - schedule loop contains errors
            diagnostics.error(
                "scheduler",
                "scheduling loop crashed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
        finally:
            loop.close()

    async def _run_schedule(self) -> None:
        assert self._stop_event is not None
        stop = self._stop_event
        next_fire = time.monotonic() + self._initial_delay
        while True:
            delay = next_fire - time.monotonic()
            if delay > 0:
                try:
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
            if stop.is_set():
                return
            self._transition(SchedulerState.SCHEDULED, SchedulerState.PUBLISHING)
            try:
                await self._run_once()
            finally:
                self._transition(SchedulerState.PUBLISHING, SchedulerState.SCHEDULED)
            self._scheduled_runs += 1
            # Fixed rate: a late run is followed immediately by the next one
            next_fire += self._period

    async def _run_once(self) -> PublishResult | None:
        try:
            return await self._publisher.publish()
        except Exception as exc:
            diagnostics.error(
                "scheduler",
                "publisher run raised",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    def _stop_schedule(self, timeout: float) -> None:
        thread = self._thread
        if thread is None:
            return
        # start() may still be waiting for the loop to come up
        self._ready.wait(timeout)
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._signal_stop)
        except RuntimeError:
            # Loop already closed: the scheduling thread has exited
            return
        if thread is threading.current_thread():
            return
        thread.join(timeout)
        if not thread.is_alive():
            return
        diagnostics.warn(
            "scheduler",
            "publish still running after shutdown timeout, cancelling",
            timeout_seconds=timeout,
        )
        try:
            loop.call_soon_threadsafe(self._cancel_task)
        except RuntimeError:
            return
        thread.join(timeout)
        if thread.is_alive():
            diagnostics.error(
                "scheduler",
                "publisher thread did not terminate",
                timeout_seconds=timeout,
            )

    def _signal_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def _cancel_task(self) -> None:
        if self._task is not None:
            self._task.cancel()

    def _final_drain(self) -> None:
        try:
            self.final_results = run_coroutine_sync(self._drain_remaining())
        except Exception as exc:
            diagnostics.error(
                "scheduler",
                "final drain failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )

    async def _drain_remaining(self) -> list[PublishResult]:
        results = [await self._publisher.publish()]
        while (
            results[-1].outcome is not PublishOutcome.EMPTY
            and self._publisher.pending() > 0
        ):
            results.append(await self._publisher.publish())
        return results
