"""
Standard input ingestion.

The ingestor scans a binary stream line by line on a dedicated daemon thread,
drops empty lines, stamps each remaining line with the read-time wall clock in
milliseconds and hands the resulting ``LogEvent`` to the batcher channel. The
thread blocks on the channel when it is full, which stops draining stdin.

Lines longer than ``max_line_bytes`` follow the configured policy:

- ``truncate``: keep the head, discard the rest of the line
- ``split``: emit consecutive chunks as separate events
- ``stop``: treat the line as end of input

Cuts never fall inside a UTF-8 sequence. A trailing ``\\r`` is stripped with
the newline.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from typing import BinaryIO, Callable, Iterator, Literal

from ..metrics.metrics import MetricsCollector
from . import diagnostics
from .concurrency import Channel
from .errors import ChannelClosed
from .events import LogEvent, now_ms
from .settings import InputSettings

LongLinePolicy = Literal["truncate", "split", "stop"]


def _safe_cut(raw: bytes, limit: int) -> int:
    """Largest index <= limit that does not split a UTF-8 sequence."""
    if limit >= len(raw):
        return len(raw)
    cut = limit
    while cut > 0 and (raw[cut] & 0xC0) == 0x80:
        cut -= 1
    return cut or limit


def _strip_eol(raw: bytes) -> bytes:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw


class Ingestor:
    """Turns a line-oriented byte stream into a channel of events."""

    def __init__(
        self,
        stream: BinaryIO,
        events: Channel[LogEvent],
        *,
        max_line_bytes: int = 262_118,
        long_line_policy: LongLinePolicy = "truncate",
        encoding_errors: str = "replace",
        clock: Callable[[], int] = now_ms,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if max_line_bytes < 4:
            raise ValueError("max_line_bytes must be >= 4")
        self._stream = stream
        self._events = events
        self._limit = max_line_bytes
        self._policy = long_line_policy
        self._errors = encoding_errors
        self._clock = clock
        self._metrics = metrics
        self._last_ts = 0
        self._long_lines = 0

    @classmethod
    def from_settings(
        cls,
        stream: BinaryIO,
        events: Channel[LogEvent],
        settings: InputSettings,
        *,
        metrics: MetricsCollector | None = None,
    ) -> Ingestor:
        return cls(
            stream,
            events,
            max_line_bytes=settings.max_line_bytes,
            long_line_policy=settings.long_line_policy,
            encoding_errors=settings.encoding_errors,
            metrics=metrics,
        )

    @property
    def long_lines(self) -> int:
        return self._long_lines

    def _make_event(self, raw: bytes) -> LogEvent | None:
        if not raw:
            return None
        text = raw.decode("utf-8", errors=self._errors)
        if not text:
            return None
        # Never step backwards, even if the wall clock does
        ts = max(self._clock(), self._last_ts)
        self._last_ts = ts
        return LogEvent(message=text, timestamp_ms=ts)

    def _skip_rest_of_line(self) -> None:
        while True:
            raw = self._stream.readline(self._limit + 1)
            if not raw or raw.endswith(b"\n"):
                return

    def iter_events(self) -> Iterator[LogEvent]:
        """Synchronously scan the stream and yield events in input order."""
        limit = self._limit
        while True:
            raw = self._stream.readline(limit + 1)
            if not raw:
                return
            if raw.endswith(b"\n") or len(raw) <= limit:
                event = self._make_event(_strip_eol(raw))
                if event is not None:
                    yield event
                continue

            self._long_lines += 1
            diagnostics.warn(
                "ingest",
                "line exceeds max_line_bytes",
                policy=self._policy,
                max_line_bytes=limit,
            )
            if self._policy == "stop":
                return

            cut = _safe_cut(raw, limit)
            event = self._make_event(raw[:cut])
            if event is not None:
                yield event
            if self._policy == "truncate":
                self._skip_rest_of_line()
                continue

            carry = raw[cut:]
            while True:
                more = self._stream.readline(limit + 1 - len(carry))
                raw = carry + more
                if not more or raw.endswith(b"\n") or len(raw) <= limit:
                    event = self._make_event(_strip_eol(raw))
                    if event is not None:
                        yield event
                    break
                cut = _safe_cut(raw, limit)
                event = self._make_event(raw[:cut])
                if event is not None:
                    yield event
                carry = raw[cut:]

    async def _deliver(self, event: LogEvent) -> None:
        await self._events.put(event)
        if self._metrics is not None:
            await self._metrics.record_event_ingested()

    async def run(self) -> None:
        """Scan on a daemon thread until EOF, then close the event channel."""
        loop = asyncio.get_running_loop()
        finished: asyncio.Future[None] = loop.create_future()

        def _finish() -> None:
            self._events.close()
            if not finished.done():
                finished.set_result(None)

        def _pump() -> None:
            try:
                for event in self.iter_events():
                    asyncio.run_coroutine_threadsafe(
                        self._deliver(event), loop
                    ).result()
            except (ChannelClosed, concurrent.futures.CancelledError, RuntimeError):
                # Pipeline is shutting down
                pass
            except (OSError, ValueError) as exc:
                diagnostics.warn(
                    "ingest",
                    "read error; ending input",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            finally:
                try:
                    loop.call_soon_threadsafe(_finish)
                except RuntimeError:
                    # Loop already closed
                    pass

        thread = threading.Thread(target=_pump, name="logship-reader", daemon=True)
        thread.start()
        await finished
