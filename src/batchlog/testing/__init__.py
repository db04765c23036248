"""
Testing utilities for batchlog.

Delivery adapter doubles and record factories for exercising handlers and
publishers without a network.

Example:
    from batchlog.testing import ScriptedAdapter

    adapter = ScriptedAdapter([OrderingConflictError("t2"), "t3"])
"""

from .adapters import RecordedCall, RecordingAdapter, ScriptedAdapter
from .factories import create_events, make_record

__all__ = [
    "RecordedCall",
    "RecordingAdapter",
    "ScriptedAdapter",
    "create_events",
    "make_record",
]
