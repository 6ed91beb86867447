"""
Ordered handoff channels between pipeline stages.

``Channel`` wraps a bounded ``asyncio.Queue`` with close semantics:

- ``put`` blocks while the channel is full (natural backpressure)
- ``close`` never blocks; consumers drain what was already queued, then stop
- ``async for item in channel`` yields items in FIFO order until closed

Each channel in the pipeline has a single producer, which is also the only
caller of ``close``.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, TypeVar

from .errors import ChannelClosed

T = TypeVar("T")

_CLOSED = object()


class Channel(Generic[T]):
    """Bounded FIFO channel with close/drain semantics."""

    def __init__(self, capacity: int = 0) -> None:
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        # maxsize=0 means unbounded in asyncio.Queue
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._marker_pending = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def put(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("put on closed channel")
        await self._queue.put(item)

    def close(self) -> None:
        """Mark end of stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._push_marker()

    def _push_marker(self) -> None:
        try:
            self._queue.put_nowait(_CLOSED)
            self._marker_pending = False
        except asyncio.QueueFull:
            # Queued once the consumer frees a slot
            self._marker_pending = True

    async def get(self) -> T:
        """Return the next item; raise ``ChannelClosed`` once drained."""
        item = await self._queue.get()
        if self._marker_pending:
            self._push_marker()
        if item is _CLOSED:
            # Leave the marker for any later get
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosed("channel drained")
        return item  # type: ignore[return-value]

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                item = await self.get()
            except ChannelClosed:
                return
            yield item
