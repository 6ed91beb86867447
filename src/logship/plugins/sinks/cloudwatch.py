"""
AWS CloudWatch Logs client backed by boto3.

boto3 is synchronous, so every call runs through ``asyncio.to_thread``.
Errors are translated at this boundary into ``RemoteError``; the only
response treated as success besides a normal return is
``ResourceAlreadyExistsException`` from ``CreateLogGroup``.

Credentials and (when ``region`` is unset) the region come from the standard
boto3 resolution chain.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ...core import diagnostics
from ...core.errors import RemoteError
from . import LogStreamInfo, LogStreamPage

ALREADY_EXISTS = "ResourceAlreadyExistsException"

RETRYABLE_CODES = frozenset(
    {
        "ThrottlingException",
        "ServiceUnavailableException",
        "InternalFailure",
        "RequestLimitExceeded",
        "RequestTimeout",
        "RequestTimeoutException",
    }
)

_RETRYABLE_TRANSPORT = (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def expected_token(exc: ClientError) -> str | None:
    """Sequence token the service expected, from either response location."""
    token = exc.response.get("expectedSequenceToken")
    if token is None:
        token = exc.response.get("Error", {}).get("expectedSequenceToken")
    return token


def translate_error(exc: Exception, operation: str) -> RemoteError:
    if isinstance(exc, ClientError):
        code = error_code(exc)
        message = exc.response.get("Error", {}).get("Message") or str(exc)
        return RemoteError(
            f"{operation} failed: {code}: {message}",
            code=code,
            operation=operation,
            retryable=code in RETRYABLE_CODES,
            expected_sequence_token=expected_token(exc),
            cause=exc,
        )
    return RemoteError(
        f"{operation} failed: {exc}",
        code=type(exc).__name__,
        operation=operation,
        retryable=isinstance(exc, _RETRYABLE_TRANSPORT),
        cause=exc,
    )


class CloudWatchLogsClient:
    """Async facade over the boto3 ``logs`` client."""

    name = "cloudwatch"

    def __init__(self, *, region: str | None = None, client: Any = None) -> None:
        self._region = region
        self._client = client

    async def start(self) -> None:
        if self._client is not None:
            return
        kwargs: dict[str, Any] = {}
        if self._region:
            kwargs["region_name"] = self._region
        self._client = await asyncio.to_thread(boto3.client, "logs", **kwargs)

    async def stop(self) -> None:
        return None

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        if self._client is None:
            await self.start()
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise translate_error(exc, operation) from exc

    async def create_log_group(self, name: str) -> bool:
        try:
            await self._call("create_log_group", logGroupName=name)
        except RemoteError as exc:
            if exc.code == ALREADY_EXISTS:
                diagnostics.debug("cloudwatch", "log group exists", log_group=name)
                return False
            raise
        return True

    async def describe_log_streams(
        self, group: str, name_prefix: str, next_token: str | None = None
    ) -> LogStreamPage:
        kwargs: dict[str, Any] = {
            "logGroupName": group,
            "logStreamNamePrefix": name_prefix,
        }
        if next_token:
            kwargs["nextToken"] = next_token
        response = await self._call("describe_log_streams", **kwargs)
        streams = [
            LogStreamInfo(
                name=item["logStreamName"],
                upload_sequence_token=item.get("uploadSequenceToken"),
            )
            for item in response.get("logStreams", [])
        ]
        return LogStreamPage(streams=streams, next_token=response.get("nextToken"))

    async def create_log_stream(self, group: str, name: str) -> None:
        await self._call("create_log_stream", logGroupName=group, logStreamName=name)

    async def put_log_events(
        self,
        group: str,
        stream: str,
        events: Sequence[dict[str, Any]],
        sequence_token: str | None = None,
    ) -> str | None:
        kwargs: dict[str, Any] = {
            "logGroupName": group,
            "logStreamName": stream,
            "logEvents": list(events),
        }
        if sequence_token is not None:
            kwargs["sequenceToken"] = sequence_token
        response = await self._call("put_log_events", **kwargs)
        rejected = response.get("rejectedLogEventsInfo")
        if rejected:
            diagnostics.warn(
                "cloudwatch",
                "log events rejected",
                log_stream=stream,
                **rejected,
            )
        return response.get("nextSequenceToken")

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._call("describe_log_groups", limit=1)
            return True
        except RemoteError:
            return False


PLUGIN_METADATA = {
    "name": "cloudwatch",
    "version": "1.0.0",
    "plugin_type": "remote",
    "entry_point": "logship.plugins.sinks.cloudwatch:CloudWatchLogsClient",
    "description": "AWS CloudWatch Logs client for batched uploads.",
    "author": "logship",
    "api_version": "1.0",
    "dependencies": ["boto3>=1.26.0"],
}
