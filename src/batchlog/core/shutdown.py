"""Process-exit drain for live handlers.

Every started ``BatchingHandler`` registers itself here (WeakSet, so
registration never keeps a handler alive). On normal interpreter exit the
atexit hook shuts each one down, which flushes its buffer.

Best-effort: a failing handler never prevents the others from draining.
"""

from __future__ import annotations

import asyncio
import atexit
import concurrent.futures
import weakref
from typing import TYPE_CHECKING, Any, Coroutine, TypeVar

if TYPE_CHECKING:
    from .handler import BatchingHandler


T = TypeVar("T")

_shutdown_in_progress: bool = False
_registered_handlers: weakref.WeakSet[Any] = weakref.WeakSet()


def _get_shutdown_settings() -> dict[str, Any]:
    """Get shutdown settings from Settings, with fallback defaults."""
    try:
        from .settings import Settings

        settings = Settings()
        return {
            "atexit_drain_enabled": settings.core.atexit_drain_enabled,
            "shutdown_timeout_seconds": settings.core.shutdown_timeout_seconds,
        }
    except Exception:  # pragma: no cover - invalid environment configuration
        return {
            "atexit_drain_enabled": True,
            "shutdown_timeout_seconds": 60.0,
        }


def run_coroutine_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion from synchronous code.

    Uses a private event loop, or a helper thread when the caller is already
    inside a running loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as ex:
        return ex.submit(asyncio.run, coro).result()


def register_handler(handler: BatchingHandler) -> None:
    _registered_handlers.add(handler)


def unregister_handler(handler: BatchingHandler) -> None:
    _registered_handlers.discard(handler)


def registered_handlers() -> list[Any]:
    return list(_registered_handlers)


def _shutdown_single_handler(handler: Any, timeout: float) -> None:
    try:
        handler.shutdown(timeout)
    except Exception:
        pass  # Best effort - don't crash on exit


def _atexit_handler() -> None:
    """Shut down all registered handlers. Called by atexit; never raises."""
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return

    settings = _get_shutdown_settings()
    if not settings["atexit_drain_enabled"]:
        return

    _shutdown_in_progress = True
    try:
        # Snapshot: WeakSet iteration can fail if GC runs
        handlers = list(_registered_handlers)
    except Exception:  # pragma: no cover - rare GC race
        return

    for handler in handlers:
        _shutdown_single_handler(handler, settings["shutdown_timeout_seconds"])


def _reset_for_tests() -> None:
    global _shutdown_in_progress
    _shutdown_in_progress = False
    _registered_handlers.clear()


atexit.register(_atexit_handler)
