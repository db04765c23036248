"""
Public entrypoints for batchlog.

Provides settings-driven ``get_handler()`` and the ``runtime()`` context
manager.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from ._version import __version__
from .core import diagnostics as _diagnostics
from .core.errors import ConfigurationError as _ConfigurationError
from .core.events import DestinationIdentity as _DestinationIdentity
from .core.handler import BatchingHandler
from .core.settings import Settings
from .metrics.metrics import MetricsCollector as _MetricsCollector
from .plugins.adapters import DeliveryAdapter
from .plugins.formatters import BaseFormatter as _BaseFormatter
from .plugins.formatters.ecs import EcsFormatter as _EcsFormatter

__all__ = [
    "BatchingHandler",
    "DeliveryAdapter",
    "Settings",
    "get_handler",
    "runtime",
    "__version__",
    "VERSION",
]


def _resolve_destination(
    settings: Settings, adapter: DeliveryAdapter | None
) -> tuple[DeliveryAdapter, _DestinationIdentity, str | None]:
    cw = settings.cloudwatch
    if not cw.log_group or not cw.log_stream:
        raise _ConfigurationError(
            "cloudwatch.log_group and cloudwatch.log_stream are required",
            log_group=cw.log_group,
            log_stream=cw.log_stream,
        )
    destination = _DestinationIdentity(cw.log_group, cw.log_stream)
    token = cw.sequence_token
    if adapter is not None:
        return adapter, destination, token

    from .core.shutdown import run_coroutine_sync
    from .plugins.adapters.cloudwatch import CloudWatchLogsAdapter

    cw_adapter = CloudWatchLogsAdapter(
        region_name=cw.region,
        endpoint_url=cw.endpoint_url,
    )
    if cw.create_log_group or cw.create_log_stream or token is None:
        discovered = run_coroutine_sync(
            cw_adapter.ensure_destination(
                destination.group_name,
                destination.stream_name,
                create_group=cw.create_log_group,
                create_stream=cw.create_log_stream,
            )
        )
        if token is None:
            token = discovered
    return cw_adapter, destination, token


def get_handler(
    settings: Settings | None = None,
    *,
    adapter: DeliveryAdapter | None = None,
    formatter: _BaseFormatter | None = None,
) -> BatchingHandler:
    """Return a started batching handler configured from settings.

    Without an injected ``adapter`` a CloudWatch Logs adapter is built from
    ``settings.cloudwatch``; when no initial sequence token is configured the
    stream's current token is looked up first.

    Example:
        settings = Settings(
            cloudwatch={"log_group": "/app", "log_stream": "web-1"}
        )
        handler = get_handler(settings)
        logging.getLogger().addHandler(BatchlogLoggingHandler(handler))
    """
    cfg_source = settings or Settings()
    cfg = cfg_source.core
    _diagnostics.configure(
        enabled=cfg.internal_logging_enabled,
        level=cfg.internal_logging_level,
    )
    resolved_adapter, destination, token = _resolve_destination(cfg_source, adapter)
    metrics = _MetricsCollector(enabled=cfg.enable_metrics)
    return BatchingHandler(
        resolved_adapter,
        destination,
        sequence_token=token,
        level=cfg.log_level,
        max_queue_size=cfg.max_queue_size,
        batch_size=cfg.batch_size,
        batch_period_seconds=cfg.batch_period_seconds,
        initial_delay_seconds=cfg.initial_delay_seconds,
        max_message_length=cfg.max_message_length,
        formatter=formatter
        or _EcsFormatter(
            service_environment=cfg.service_environment,
            service_name=cfg.service_name,
        ),
        max_attempts=cfg.batch_max_attempts,
        shutdown_timeout_seconds=cfg.shutdown_timeout_seconds,
        metrics=metrics,
    )


@contextmanager
def runtime(
    settings: Settings | None = None,
    *,
    adapter: DeliveryAdapter | None = None,
) -> Iterator[BatchingHandler]:
    """Yield a started handler and always shut it down (flushing) on exit."""
    handler = get_handler(settings, adapter=adapter)
    try:
        yield handler
    finally:
        handler.shutdown()


# Version info for compatibility
VERSION = __version__
