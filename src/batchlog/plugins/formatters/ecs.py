"""Elastic Common Schema JSON formatter.

Renders one flat ECS document per record. The message has its ``%`` args
interpolated before rendering; exception details go to the ``error.*`` fields.
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict

from ..utils import parse_plugin_config

ECS_VERSION = "1.2.0"


class EcsFormatterConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    service_environment: str | None = None
    service_name: str | None = None


def _iso_timestamp(created: float) -> str:
    dt = datetime.fromtimestamp(created, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


class EcsFormatter:
    name = "ecs"

    def __init__(
        self,
        config: EcsFormatterConfig | dict | None = None,
        **kwargs: Any,
    ) -> None:
        cfg = parse_plugin_config(EcsFormatterConfig, config, **kwargs)
        self._service_environment = cfg.service_environment
        self._service_name = cfg.service_name

    def format(self, record: logging.LogRecord) -> str:
        doc: dict[str, Any] = {
            "@timestamp": _iso_timestamp(record.created),
            "log.level": record.levelname,
            "log.logger": record.name,
            "message": record.getMessage(),
            "process.pid": record.process,
            "process.thread.name": record.threadName,
            "ecs.version": ECS_VERSION,
        }
        if self._service_name:
            doc["service.name"] = self._service_name
        if self._service_environment:
            doc["service.environment"] = self._service_environment
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            doc["error.type"] = exc_type.__name__
            doc["error.message"] = str(exc_value)
            doc["error.stack_trace"] = "".join(
                traceback.format_exception(exc_type, exc_value, exc_tb)
            )
        elif record.exc_text:
            doc["error.stack_trace"] = record.exc_text
        return orjson.dumps(doc, default=str).decode("utf-8")


PLUGIN_METADATA = {
    "name": "ecs",
    "version": "1.0.0",
    "plugin_type": "formatter",
    "entry_point": "batchlog.plugins.formatters.ecs:EcsFormatter",
    "description": "Elastic Common Schema JSON record formatter.",
    "author": "Batchlog Core",
    "api_version": "1.0",
}
