from __future__ import annotations

import asyncio
import concurrent.futures
import functools
from typing import Any, Callable, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from ...core import diagnostics
from ...core.errors import OrderingConflictError, TransportError
from ...core.events import LogEvent
from ..utils import parse_plugin_config

INVALID_SEQUENCE_TOKEN = "InvalidSequenceTokenException"
DATA_ALREADY_ACCEPTED = "DataAlreadyAcceptedException"
RESOURCE_ALREADY_EXISTS = "ResourceAlreadyExistsException"


class CloudWatchLogsAdapterConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    region_name: str | None = None
    endpoint_url: str | None = None


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _expected_token(exc: ClientError) -> str | None:
    # Modeled error fields are merged at the top level of the response
    token = exc.response.get("expectedSequenceToken")
    if token is None:
        token = exc.response.get("Error", {}).get("expectedSequenceToken")
    return token


class CloudWatchLogsAdapter:
    """Delivers batches with ``PutLogEvents`` through a boto3 ``logs`` client.

    The blocking client calls run on a single worker thread owned by the
    adapter so the scheduling loop stays responsive to shutdown. Once the
    interpreter is exiting no new work can be handed to a thread, and the call
    runs inline on the draining thread instead.
    """

    name = "cloudwatch"

    def __init__(
        self,
        config: CloudWatchLogsAdapterConfig | dict | None = None,
        *,
        client: Any = None,
        **kwargs: Any,
    ) -> None:
        self._config = parse_plugin_config(
            CloudWatchLogsAdapterConfig, config, **kwargs
        )
        self._client = client
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "logs",
                region_name=self._config.region_name,
                endpoint_url=self._config.endpoint_url,
            )
        return self._client

    async def _run_blocking(self, call: Callable[..., Any], **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            if self._executor is None:
                self._executor = concurrent.futures.ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="batchlog-cloudwatch"
                )
            future = loop.run_in_executor(
                self._executor, functools.partial(call, **kwargs)
            )
        except RuntimeError:
            # Interpreter exit: work is refused before it runs, so run it here
            return call(**kwargs)
        return await future

    def close(self) -> None:
        """Release the worker thread. The adapter can still be used afterwards."""
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    async def put_batch(
        self,
        group_name: str,
        stream_name: str,
        events: Sequence[LogEvent],
        token: str | None,
    ) -> str | None:
        kwargs: dict[str, Any] = {
            "logGroupName": group_name,
            "logStreamName": stream_name,
            "logEvents": [event.to_wire() for event in events],
        }
        if token:
            kwargs["sequenceToken"] = token

        try:
            response = await self._run_blocking(
                self.client.put_log_events, **kwargs
            )
        except ClientError as exc:
            code = _error_code(exc)
            if code == INVALID_SEQUENCE_TOKEN:
                raise OrderingConflictError(_expected_token(exc), cause=exc) from exc
            if code == DATA_ALREADY_ACCEPTED:
                # The batch is already stored; sending it again would duplicate it
                diagnostics.debug(
                    "cloudwatch",
                    "batch already accepted by destination",
                    log_group=group_name,
                    log_stream=stream_name,
                )
                return _expected_token(exc)
            raise TransportError(
                f"PutLogEvents failed: {code or type(exc).__name__}",
                error_code=code or None,
                cause=exc,
            ) from exc
        except BotoCoreError as exc:
            raise TransportError(
                f"PutLogEvents failed: {exc}",
                cause=exc,
            ) from exc

        rejected = response.get("rejectedLogEventsInfo")
        if rejected:
            diagnostics.warn(
                "cloudwatch",
                "destination rejected part of a batch",
                log_group=group_name,
                log_stream=stream_name,
                rejected=rejected,
            )
        return response.get("nextSequenceToken")

    async def ensure_destination(
        self,
        group_name: str,
        stream_name: str,
        *,
        create_group: bool = False,
        create_stream: bool = False,
    ) -> str | None:
        """Create the group/stream if asked and return the stream's token."""
        if create_group:
            await self._create_tolerating_existing(
                self.client.create_log_group, logGroupName=group_name
            )
        if create_stream:
            await self._create_tolerating_existing(
                self.client.create_log_stream,
                logGroupName=group_name,
                logStreamName=stream_name,
            )
        try:
            response = await self._run_blocking(
                self.client.describe_log_streams,
                logGroupName=group_name,
                logStreamNamePrefix=stream_name,
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransportError(
                f"DescribeLogStreams failed: {exc}",
                error_code=_error_code(exc) if isinstance(exc, ClientError) else None,
                cause=exc,
            ) from exc
        for stream in response.get("logStreams", []):
            if stream.get("logStreamName") == stream_name:
                return stream.get("uploadSequenceToken")
        return None

    async def _create_tolerating_existing(self, call: Any, **kwargs: Any) -> None:
        try:
            await self._run_blocking(call, **kwargs)
        except ClientError as exc:
            if _error_code(exc) != RESOURCE_ALREADY_EXISTS:
                raise TransportError(
                    f"{getattr(call, '__name__', 'create')} failed: {_error_code(exc)}",
                    error_code=_error_code(exc) or None,
                    cause=exc,
                ) from exc


PLUGIN_METADATA = {
    "name": "cloudwatch",
    "version": "1.0.0",
    "plugin_type": "adapter",
    "entry_point": "batchlog.plugins.adapters.cloudwatch:CloudWatchLogsAdapter",
    "description": "AWS CloudWatch Logs delivery adapter (PutLogEvents).",
    "author": "Batchlog Core",
    "api_version": "1.0",
    "dependencies": ["boto3>=1.26.0"],
}
