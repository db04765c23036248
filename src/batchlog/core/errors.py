"""
Error hierarchy for batchlog.

Every error carries a category and severity so diagnostics can report
failures uniformly. Delivery adapters raise the two delivery errors below;
the batch publisher is the only place that handles them.

- OrderingConflictError: the destination rejected the sequence token and
  told us which one it expects. Recoverable by retrying the same batch.
- TransportError: anything else (network, auth, throttling). Not expected to
  self-correct, so the batch is abandoned.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    DELIVERY = "delivery"
    ORDERING = "ordering"
    CONFIG = "config"
    FORMAT = "format"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Structured context attached to every BatchlogError."""

    category: ErrorCategory
    severity: ErrorSeverity
    error_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)
    details: dict[str, Any] = field(default_factory=dict)


class BatchlogError(Exception):
    """Base class for all batchlog errors."""

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        cause: BaseException | None = None,
        **details: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            category=category or self.default_category,
            severity=severity or self.default_severity,
            details=dict(details),
        )
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.context.category.value,
            "severity": self.context.severity.value,
            "error_id": self.context.error_id,
            "timestamp": self.context.timestamp,
            "details": dict(self.context.details),
            "cause": repr(self.__cause__) if self.__cause__ is not None else None,
        }


class ConfigurationError(BatchlogError):
    default_category = ErrorCategory.CONFIG
    default_severity = ErrorSeverity.HIGH


class FormattingError(BatchlogError):
    default_category = ErrorCategory.FORMAT
    default_severity = ErrorSeverity.LOW


class DeliveryError(BatchlogError):
    """Base class for failures reported by a delivery adapter."""

    default_category = ErrorCategory.DELIVERY
    default_severity = ErrorSeverity.HIGH


class OrderingConflictError(DeliveryError):
    """The supplied sequence token did not match the destination's."""

    default_category = ErrorCategory.ORDERING
    default_severity = ErrorSeverity.LOW

    def __init__(
        self,
        expected_token: str | None,
        message: str = "sequence token rejected by destination",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, expected_token=expected_token, **kwargs)
        self.expected_token = expected_token


class TransportError(DeliveryError):
    """Any delivery failure that does not carry a corrected token."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code=error_code, **kwargs)
        self.error_code = error_code


__all__ = [
    "BatchlogError",
    "ConfigurationError",
    "DeliveryError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "FormattingError",
    "OrderingConflictError",
    "TransportError",
]
