from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, runtime_checkable

from ...core.events import LogEvent


@dataclass(frozen=True)
class LogStreamInfo:
    name: str
    upload_sequence_token: str | None = None


@dataclass(frozen=True)
class LogStreamPage:
    streams: list[LogStreamInfo]
    next_token: str | None = None


@runtime_checkable
class LogServiceClient(Protocol):
    """Remote log service operations the uploader relies on.

    Failures are raised as ``RemoteError``; "log group already exists" is not
    a failure and is reported by ``create_log_group`` returning ``False``.
    """

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def create_log_group(self, name: str) -> bool:
        """Create the group; ``True`` if created, ``False`` if it already existed."""
        ...

    async def describe_log_streams(
        self, group: str, name_prefix: str, next_token: str | None = None
    ) -> LogStreamPage: ...

    async def create_log_stream(self, group: str, name: str) -> None: ...

    async def put_log_events(
        self,
        group: str,
        stream: str,
        events: Sequence[dict[str, Any]],
        sequence_token: str | None = None,
    ) -> str | None:
        """Upload events and return the next sequence token."""
        ...


@runtime_checkable
class BaseSink(Protocol):
    """Destination for batches that were accepted by the remote."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def write_batch(self, batch: Sequence[LogEvent]) -> None: ...


__all__ = [
    "BaseSink",
    "LogServiceClient",
    "LogStreamInfo",
    "LogStreamPage",
]
