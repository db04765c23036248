"""
Transport-ready log events and the values that travel with a batch.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class LogEvent:
    """One formatted record waiting for delivery."""

    message: str
    timestamp: int

    def __post_init__(self) -> None:
        if not isinstance(self.timestamp, int) or isinstance(self.timestamp, bool):
            raise ValueError("timestamp must be integer milliseconds since epoch")

    @classmethod
    def create(cls, message: str, timestamp: int | None = None) -> LogEvent:
        if timestamp is None:
            timestamp = now_millis()
        return cls(message=message, timestamp=timestamp)

    def to_wire(self) -> dict[str, Any]:
        """Mapping accepted by CloudWatch ``PutLogEvents``."""
        return {"timestamp": self.timestamp, "message": self.message}


@dataclass(frozen=True)
class DestinationIdentity:
    """Log group and stream a handler writes to for its whole lifetime."""

    group_name: str
    stream_name: str

    def __post_init__(self) -> None:
        if not self.group_name or not self.stream_name:
            raise ValueError("group_name and stream_name must not be empty")


class SequenceState:
    """Expected next-write position for one destination stream.

    Only the publisher run currently in progress reads or writes it; the
    scheduler guarantees there is never more than one.
    """

    __slots__ = ("token",)

    def __init__(self, token: str | None = None) -> None:
        self.token = token

    def __repr__(self) -> str:
        return f"SequenceState(token={self.token!r})"


class PublishOutcome(str, Enum):
    EMPTY = "empty"
    DELIVERED = "delivered"
    LOST = "lost"


@dataclass(frozen=True)
class PublishResult:
    """What a single publisher invocation did with its batch."""

    outcome: PublishOutcome
    attempts: int = 0
    event_count: int = 0
    reason: str | None = None

    @property
    def delivered(self) -> bool:
        return self.outcome is PublishOutcome.DELIVERED


EMPTY_RESULT = PublishResult(outcome=PublishOutcome.EMPTY)
