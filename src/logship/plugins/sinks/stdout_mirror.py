from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone, tzinfo
from typing import Sequence, TextIO

from ...core.events import LogEvent


def format_timestamp(timestamp_ms: int, tz: tzinfo | None = None) -> str:
    """Render epoch milliseconds as wall time, e.g.
    ``2024-05-01 13:04:05.12 +0200 CEST``.

    Local zone unless ``tz`` is given; trailing zeros of the fraction are
    dropped and a whole second has no fraction.
    """
    seconds, millis = divmod(timestamp_ms, 1000)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    dt = dt.astimezone(tz) if tz is not None else dt.astimezone()
    text = dt.strftime("%Y-%m-%d %H:%M:%S")
    if millis:
        text += f".{millis:03d}".rstrip("0")
    return f"{text} {dt.strftime('%z %Z')}"


def format_event(event: LogEvent, tz: tzinfo | None = None) -> str:
    return f"{format_timestamp(event.timestamp_ms, tz)} {event.message}"


class StdoutMirrorSink:
    """Writes each uploaded event to stdout as ``<local-time> <message>``.

    - One line per event, in batch order
    - One write+flush per batch, off the event loop
    - Errors propagate; a broken stdout ends the run
    """

    name = "stdout-mirror"

    def __init__(self, stream: TextIO | None = None, *, tz: tzinfo | None = None) -> None:
        self._stream = stream
        self._tz = tz
        self._lock = asyncio.Lock()

    async def start(self) -> None:  # lifecycle placeholder
        return None

    async def stop(self) -> None:  # lifecycle placeholder
        return None

    async def write_batch(self, batch: Sequence[LogEvent]) -> None:
        if not batch:
            return
        text = "".join(format_event(event, self._tz) + "\n" for event in batch)
        stream = self._stream if self._stream is not None else sys.stdout

        def _write() -> None:
            stream.write(text)
            stream.flush()

        async with self._lock:
            await asyncio.to_thread(_write)


PLUGIN_METADATA = {
    "name": "stdout-mirror",
    "version": "1.0.0",
    "plugin_type": "sink",
    "entry_point": __name__,
    "description": "Mirror uploaded events to stdout as '<local-time> <message>'",
    "author": "logship",
    "api_version": "1.0",
}
