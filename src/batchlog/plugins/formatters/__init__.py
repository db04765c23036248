"""
Record formatters.

A formatter turns one stdlib ``logging.LogRecord`` into the transport string
stored in a ``LogEvent``. The handler bounds whatever a formatter returns with
``truncate_message``.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from ...core.settings import TRUNCATION_MARKER


@runtime_checkable
class BaseFormatter(Protocol):
    name: str

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover
        ...


def truncate_message(
    text: str,
    max_length: int,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """Bound ``text`` to ``max_length`` characters, marker included.

    ``max_length <= 0`` disables truncation.
    """
    if max_length <= 0 or len(text) <= max_length:
        return text
    keep = max(0, max_length - len(marker))
    return text[:keep] + marker


class PlainFormatter:
    """Adapter for a stdlib ``logging.Formatter``."""

    name = "plain"

    def __init__(self, formatter: logging.Formatter | None = None) -> None:
        self._formatter = formatter or logging.Formatter()

    def format(self, record: logging.LogRecord) -> str:
        return self._formatter.format(record)


__all__ = ["BaseFormatter", "PlainFormatter", "truncate_message"]
