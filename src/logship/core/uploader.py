"""
Stream bootstrap and the sequential upload loop.

Bootstrap runs once before any upload:

1. ensure the log group exists ("already exists" is success)
2. look for a stream whose name matches exactly among those sharing the
   configured prefix and adopt its upload sequence token
3. otherwise create the stream; the cursor stays absent

Uploads are strictly sequential. Request N+1 carries the token returned by
request N. With a single attempt (the default) any failure is fatal. With
``max_attempts > 1`` retryable failures back off and retry the same batch in
place, and token mismatches adopt the token the service expected.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import AsyncIterable, Sequence

from ..metrics.metrics import MetricsCollector
from ..plugins.sinks import BaseSink, LogServiceClient
from . import diagnostics
from .errors import BootstrapError, RemoteError, UploadError
from .events import LogEvent, batch_accounted_size
from .retry import AsyncRetrier, RetryConfig
from .settings import UploadSettings

INVALID_TOKEN = "InvalidSequenceTokenException"
ALREADY_ACCEPTED = "DataAlreadyAcceptedException"
TOKEN_MISMATCH_CODES = frozenset({INVALID_TOKEN, ALREADY_ACCEPTED})


@dataclass
class StreamCursor:
    """Process-local sequence token for the target stream."""

    sequence_token: str | None = None

    def advance(self, token: str | None) -> None:
        self.sequence_token = token


class Uploader:
    def __init__(
        self,
        client: LogServiceClient,
        *,
        log_group_name: str,
        log_stream_name: str,
        mirror: BaseSink | None = None,
        upload_settings: UploadSettings | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._client = client
        self._group = log_group_name
        self._stream = log_stream_name
        self._mirror = mirror
        self._metrics = metrics
        self._cursor = StreamCursor()
        self._bootstrapped = False

        cfg = upload_settings or UploadSettings()
        self._refresh_on_mismatch = cfg.max_attempts > 1 and cfg.refresh_token_on_mismatch
        self._retrier = AsyncRetrier(
            RetryConfig(
                max_attempts=cfg.max_attempts,
                base_delay=cfg.base_delay,
                max_delay=cfg.max_delay,
            ),
            should_retry=self._should_retry,
            on_retry=self._on_retry,
        )

    @property
    def cursor(self) -> StreamCursor:
        return self._cursor

    @property
    def log_stream_name(self) -> str:
        return self._stream

    async def _find_stream(self) -> tuple[bool, str | None]:
        """Return ``(found, upload_sequence_token)`` for the exact stream name."""
        next_token: str | None = None
        while True:
            page = await self._client.describe_log_streams(
                self._group, self._stream, next_token
            )
            for info in page.streams:
                if info.name == self._stream:
                    return True, info.upload_sequence_token
            if not page.next_token or page.next_token == next_token:
                return False, None
            next_token = page.next_token

    async def bootstrap(self) -> StreamCursor:
        if self._bootstrapped:
            return self._cursor
        try:
            created = await self._client.create_log_group(self._group)
        except RemoteError as exc:
            raise BootstrapError(
                f"cannot ensure log group {self._group!r}: {exc}", cause=exc
            ) from exc
        diagnostics.debug(
            "uploader",
            "log group created" if created else "log group exists",
            log_group=self._group,
        )

        try:
            found, token = await self._find_stream()
        except RemoteError as exc:
            raise BootstrapError(
                f"cannot describe log streams in {self._group!r}: {exc}", cause=exc
            ) from exc

        if found:
            self._cursor.advance(token)
            diagnostics.debug(
                "uploader",
                "log stream adopted",
                log_stream=self._stream,
                has_token=token is not None,
            )
        else:
            try:
                await self._client.create_log_stream(self._group, self._stream)
            except RemoteError as exc:
                raise BootstrapError(
                    f"cannot create log stream {self._stream!r}: {exc}", cause=exc
                ) from exc
            diagnostics.debug("uploader", "log stream created", log_stream=self._stream)

        self._bootstrapped = True
        return self._cursor

    def _should_retry(self, exc: BaseException) -> bool:
        if not isinstance(exc, RemoteError):
            return False
        if exc.code == INVALID_TOKEN:
            return self._refresh_on_mismatch
        return exc.retryable

    async def _refresh_token(self, exc: RemoteError) -> None:
        token = exc.expected_sequence_token
        if token is None:
            _, token = await self._find_stream()
        self._cursor.advance(token)

    async def _on_retry(self, attempt: int, exc: BaseException, delay: float) -> None:
        code = getattr(exc, "code", None)
        if isinstance(exc, RemoteError) and exc.code == INVALID_TOKEN:
            await self._refresh_token(exc)
        diagnostics.warn(
            "uploader",
            "upload retry",
            attempt=attempt,
            code=code,
            delay=round(delay, 3),
            error=str(exc),
        )
        if self._metrics is not None:
            await self._metrics.record_upload_retry(code=code)

    async def _put(self, wire: list[dict]) -> str | None:
        try:
            return await self._client.put_log_events(
                self._group, self._stream, wire, self._cursor.sequence_token
            )
        except RemoteError as exc:
            if exc.code == ALREADY_ACCEPTED and self._refresh_on_mismatch:
                # The service already holds this batch; continue from its token
                diagnostics.warn(
                    "uploader", "batch already accepted", log_stream=self._stream
                )
                if exc.expected_sequence_token is not None:
                    return exc.expected_sequence_token
                _, token = await self._find_stream()
                return token
            raise

    async def upload(self, batch: Sequence[LogEvent]) -> str | None:
        """Upload one batch, advance the cursor and mirror the events."""
        if not self._bootstrapped:
            await self.bootstrap()
        if not batch:
            return self._cursor.sequence_token

        wire = [event.to_wire() for event in batch]
        attempts = 0

        async def _attempt() -> str | None:
            nonlocal attempts
            attempts += 1
            return await self._put(wire)

        start = time.perf_counter()
        try:
            token = await self._retrier(_attempt)
        except RemoteError as exc:
            if self._metrics is not None:
                await self._metrics.record_upload_error()
            raise UploadError(
                f"put log events failed for {self._stream!r}: {exc}",
                batch_size=len(batch),
                error_code=exc.code,
                attempts=attempts,
                cause=exc,
            ) from exc
        latency = time.perf_counter() - start

        self._cursor.advance(token)
        accounted = batch_accounted_size(list(batch))
        diagnostics.debug(
            "uploader",
            "batch uploaded",
            events=len(batch),
            bytes=accounted,
            attempts=attempts,
        )
        if self._metrics is not None:
            await self._metrics.record_batch_uploaded(
                events=len(batch),
                accounted_bytes=accounted,
                latency_seconds=latency,
            )
        if self._mirror is not None:
            await self._mirror.write_batch(batch)
        return token

    async def run(self, batches: AsyncIterable[Sequence[LogEvent]]) -> int:
        """Upload every batch in arrival order; return the number uploaded."""
        await self.bootstrap()
        count = 0
        async for batch in batches:
            await self.upload(batch)
            count += 1
        return count
