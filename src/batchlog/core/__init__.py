"""Core buffering, batching and delivery engine."""

from .buffer import EventBuffer
from .errors import (
    BatchlogError,
    ConfigurationError,
    DeliveryError,
    ErrorCategory,
    ErrorSeverity,
    FormattingError,
    OrderingConflictError,
    TransportError,
)
from .events import (
    DestinationIdentity,
    LogEvent,
    PublishOutcome,
    PublishResult,
    SequenceState,
)
from .levels import RecordFilter, get_level_priority
from .publisher import BatchPublisher
from .scheduler import PublishScheduler, SchedulerState

__all__ = [
    "BatchPublisher",
    "BatchlogError",
    "ConfigurationError",
    "DeliveryError",
    "DestinationIdentity",
    "ErrorCategory",
    "ErrorSeverity",
    "EventBuffer",
    "FormattingError",
    "LogEvent",
    "OrderingConflictError",
    "PublishOutcome",
    "PublishResult",
    "PublishScheduler",
    "RecordFilter",
    "SchedulerState",
    "SequenceState",
    "TransportError",
    "get_level_priority",
]
