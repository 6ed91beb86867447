"""
Time and size bounded batching of log events.

A batch is cut when any of these holds:

1. it holds ``max_items`` events
2. its accounted size (message bytes + 26 per event) exceeds ``max_bytes``;
   the event that crosses the threshold stays in the batch
3. ``max_age_seconds`` elapsed since the batcher started waiting for the
   batch's first event

The age clock starts before the first event arrives, so an idle pipeline
sees empty intervals; an empty batch is dropped and a fresh interval starts.
Upstream closure flushes the in-flight batch and ends the output.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator

from . import diagnostics
from .concurrency import Channel
from .errors import ChannelClosed
from .events import LogEvent
from .settings import BatchSettings

Batch = list[LogEvent]


@dataclass(frozen=True)
class BatchPolicy:
    max_items: int = 1000
    max_bytes: int = 8_000_000
    max_age_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_items < 1:
            raise ValueError("max_items must be >= 1")
        if self.max_bytes < 1:
            raise ValueError("max_bytes must be >= 1")
        if self.max_age_seconds <= 0:
            raise ValueError("max_age_seconds must be > 0")

    @classmethod
    def from_settings(cls, settings: BatchSettings) -> BatchPolicy:
        return cls(
            max_items=settings.max_items,
            max_bytes=settings.max_bytes,
            max_age_seconds=settings.max_age_seconds,
        )


class Batcher:
    """Consumes an event channel and produces ordered, non-empty batches."""

    def __init__(self, events: Channel[LogEvent], policy: BatchPolicy) -> None:
        self._events = events
        self._policy = policy

    @property
    def policy(self) -> BatchPolicy:
        return self._policy

    async def batches(self) -> AsyncIterator[Batch]:
        loop = asyncio.get_running_loop()
        policy = self._policy
        # A get that outlives an expired interval carries over to the next batch
        pending: asyncio.Future[LogEvent] | None = None
        upstream_open = True
        try:
            while upstream_open:
                batch: Batch = []
                size = 0
                reason = "age"
                deadline = loop.time() + policy.max_age_seconds
                while True:
                    if pending is None:
                        pending = asyncio.ensure_future(self._events.get())
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        break
                    done, _ = await asyncio.wait({pending}, timeout=remaining)
                    if not done:
                        break
                    fut, pending = pending, None
                    try:
                        event = fut.result()
                    except ChannelClosed:
                        upstream_open = False
                        reason = "closed"
                        break
                    batch.append(event)
                    size += event.accounted_size
                    if len(batch) >= policy.max_items:
                        reason = "items"
                        break
                    if size > policy.max_bytes:
                        reason = "bytes"
                        break
                if batch:
                    diagnostics.debug(
                        "batcher",
                        "batch cut",
                        reason=reason,
                        events=len(batch),
                        bytes=size,
                    )
                    yield batch
        finally:
            if pending is not None and not pending.done():
                pending.cancel()

    async def run(self, out: Channel[Batch]) -> None:
        """Pump every batch into ``out`` and close it when upstream ends."""
        try:
            async for batch in self.batches():
                await out.put(batch)
        finally:
            out.close()


async def batch_events(
    events: Channel[LogEvent],
    *,
    max_items: int = 1000,
    max_bytes: int = 8_000_000,
    max_age_seconds: float = 1.0,
) -> AsyncIterator[Batch]:
    """Functional form of ``Batcher.batches``."""
    batcher = Batcher(
        events,
        BatchPolicy(
            max_items=max_items,
            max_bytes=max_bytes,
            max_age_seconds=max_age_seconds,
        ),
    )
    async for batch in batcher.batches():
        yield batch
