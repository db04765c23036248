"""
Internal diagnostics for batchlog's own non-fatal failures.

The engine is a log shipper, so it cannot report its problems through the
logging pipeline it feeds. Diagnostics are written as one JSON line per
payload to stderr instead, through a swappable writer.

Emission is controlled by ``core.internal_logging_enabled`` and
``core.internal_logging_level`` (read once and cached). Bursts can be
collapsed with ``_rate_limit_key``: at most one payload per key is emitted
inside ``RATE_LIMIT_WINDOW_SECONDS``.

None of the functions here ever raise.
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, Callable

import orjson

RATE_LIMIT_WINDOW_SECONDS = 10.0

_LEVEL_ORDER = {"DEBUG": 10, "WARN": 30, "ERROR": 40}

Writer = Callable[[dict[str, Any]], None]

# Cached (enabled, minimum level); None until first emission
_internal_logging_enabled: tuple[bool, int] | None = None
_writer: Writer | None = None
_rate_limit_lock = threading.Lock()
_last_emitted: dict[str, float] = {}


def _default_writer(payload: dict[str, Any]) -> None:
    line = orjson.dumps(payload, default=str)
    stream = sys.stderr
    stream.write(line.decode("utf-8") + "\n")
    stream.flush()


def _threshold() -> tuple[bool, int]:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            core = Settings().core
            _internal_logging_enabled = (
                bool(core.internal_logging_enabled),
                _LEVEL_ORDER[core.internal_logging_level],
            )
        except Exception:
            _internal_logging_enabled = (True, _LEVEL_ORDER["WARN"])
    return _internal_logging_enabled


def _allow(key: str | None) -> bool:
    if key is None:
        return True
    now = time.monotonic()
    with _rate_limit_lock:
        last = _last_emitted.get(key)
        if last is not None and (now - last) < RATE_LIMIT_WINDOW_SECONDS:
            return False
        _last_emitted[key] = now
    return True


def emit(
    level: str,
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    """Emit one diagnostic payload if enabled and not rate limited."""
    try:
        enabled, minimum = _threshold()
        if not enabled or _LEVEL_ORDER.get(level, 0) < minimum:
            return
        if not _allow(_rate_limit_key):
            return
        payload: dict[str, Any] = {
            "ts": time.time(),
            "level": level,
            "component": component,
            "message": message,
        }
        payload.update(fields)
        (_writer or _default_writer)(payload)
    except Exception:
        return None


def debug(component: str, message: str, **fields: Any) -> None:
    emit("DEBUG", component, message, **fields)


def warn(component: str, message: str, **fields: Any) -> None:
    emit("WARN", component, message, **fields)


def error(component: str, message: str, **fields: Any) -> None:
    emit("ERROR", component, message, **fields)


def configure(*, enabled: bool, level: str = "WARN") -> None:
    """Override the settings-derived gate (used by handler construction)."""
    global _internal_logging_enabled
    _internal_logging_enabled = (bool(enabled), _LEVEL_ORDER.get(level, 30))


def set_writer_for_tests(writer: Writer | None) -> None:
    """Route payloads to ``writer`` (``None`` restores stderr)."""
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _internal_logging_enabled, _writer
    _internal_logging_enabled = None
    _writer = None
    with _rate_limit_lock:
        _last_emitted.clear()
