"""Severity names, priorities and the record filter that gates the hot path.

Priorities follow the stdlib ``logging`` numbering so a ``LogRecord.levelno``
can be compared directly against the configured threshold.
"""

from __future__ import annotations

from typing import Final

_DEFAULT_LEVELS: Final[dict[str, int]] = {
    "NOTSET": 0,
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "WARN": 30,  # alias
    "ERROR": 40,
    "CRITICAL": 50,
    "FATAL": 50,  # alias
}


def get_level_priority(level: str | int) -> int:
    """Get priority for a level name or number.

    Args:
        level: Level name (case-insensitive) or numeric priority

    Returns:
        Priority value. Unknown names default to INFO (20).
    """
    if isinstance(level, int):
        return level
    return _DEFAULT_LEVELS.get(level.strip().upper(), 20)


def get_all_levels() -> dict[str, int]:
    return dict(_DEFAULT_LEVELS)


class RecordFilter:
    """Minimum-severity predicate applied before formatting or buffering."""

    __slots__ = ("_threshold",)

    def __init__(self, threshold: str | int = "INFO") -> None:
        self._threshold = get_level_priority(threshold)

    @property
    def threshold(self) -> int:
        return self._threshold

    def should_emit(self, severity: int) -> bool:
        return severity >= self._threshold
