"""
Bridge from Python's ``logging`` module to a ``BatchingHandler``.

    import logging
    from batchlog import get_handler
    from batchlog.stdlib import BatchlogLoggingHandler

    logging.getLogger().addHandler(BatchlogLoggingHandler(get_handler()))
"""

from __future__ import annotations

import logging

from .core.handler import BatchingHandler


class BatchlogLoggingHandler(logging.Handler):
    """``logging.Handler`` that forwards records to a batching handler.

    ``emit`` only enqueues, so it is safe on hot paths; ``close`` flushes the
    buffer before releasing the handler.
    """

    def __init__(self, handler: BatchingHandler) -> None:
        super().__init__(level=handler.threshold)
        self._handler = handler

    @property
    def batching_handler(self) -> BatchingHandler:
        return self._handler

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._handler.submit(record)
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self._handler.flush()

    def close(self) -> None:
        try:
            self._handler.shutdown()
        finally:
            super().close()
