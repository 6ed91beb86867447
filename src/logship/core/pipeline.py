"""
Pipeline wiring: reader -> batcher -> uploader.

The reader and batcher run as background tasks; the calling task performs the
stream bootstrap and then acts as the uploader until the batch channel closes.
A fatal bootstrap or upload error cancels the background tasks and propagates.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, BinaryIO, TextIO

from prometheus_client import CollectorRegistry

from ..metrics.metrics import MetricsCollector, PipelineMetrics
from ..plugins.sinks import BaseSink, LogServiceClient
from ..plugins.sinks.stdout_mirror import StdoutMirrorSink
from . import diagnostics
from .batcher import Batch, BatchPolicy, Batcher
from .concurrency import Channel
from .events import LogEvent
from .ingest import Ingestor
from .settings import Settings, resolve_stream_name
from .uploader import Uploader


@dataclass
class PipelineResult:
    log_group_name: str
    log_stream_name: str
    batches: int
    metrics: PipelineMetrics
    # Populated when core.enable_metrics is set, for library callers
    registry: CollectorRegistry | None = None


class Pipeline:
    def __init__(
        self,
        settings: Settings,
        *,
        client: LogServiceClient,
        stdin: BinaryIO,
        stdout: TextIO | None = None,
        mirror: BaseSink | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._metrics = metrics or MetricsCollector(enabled=settings.core.enable_metrics)

        group = settings.require_log_group()
        self._group = group
        stream = resolve_stream_name(group, settings.stream.log_stream_name)

        if mirror is None and not settings.stream.quiet:
            mirror = StdoutMirrorSink(stdout)
        self._mirror = mirror

        self._events: Channel[LogEvent] = Channel(settings.batch.channel_capacity)
        self._batches: Channel[Batch] = Channel(settings.batch.channel_capacity)
        self._ingestor = Ingestor.from_settings(
            stdin, self._events, settings.input, metrics=self._metrics
        )
        self._batcher = Batcher(self._events, BatchPolicy.from_settings(settings.batch))
        self._uploader = Uploader(
            client,
            log_group_name=group,
            log_stream_name=stream,
            mirror=self._mirror,
            upload_settings=settings.upload,
            metrics=self._metrics,
        )

    @property
    def uploader(self) -> Uploader:
        return self._uploader

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    async def run(self) -> PipelineResult:
        reader = asyncio.create_task(self._ingestor.run(), name="logship-reader")
        batcher = asyncio.create_task(
            self._batcher.run(self._batches), name="logship-batcher"
        )
        background = (reader, batcher)
        try:
            await self._client.start()
            if self._mirror is not None:
                await self._mirror.start()
            await self._uploader.bootstrap()
            count = await self._uploader.run(self._batches)
            await asyncio.gather(*background)
        except BaseException:
            for task in background:
                task.cancel()
            await asyncio.gather(*background, return_exceptions=True)
            raise
        finally:
            if self._mirror is not None:
                await self._mirror.stop()
            await self._client.stop()

        snapshot = await self._metrics.snapshot()
        fields: dict[str, Any] = dict(snapshot.to_dict())
        exposition = self._metrics.exposition()
        if exposition is not None:
            fields["prometheus"] = exposition
        diagnostics.debug(
            "pipeline",
            "drained",
            log_group=self._group,
            log_stream=self._uploader.log_stream_name,
            **fields,
        )
        return PipelineResult(
            log_group_name=self._group,
            log_stream_name=self._uploader.log_stream_name,
            batches=count,
            metrics=snapshot,
            registry=self._metrics.registry,
        )
