"""
Public entrypoints for logship.

Ship newline-delimited stdin records to AWS CloudWatch Logs through a
time- and size-bounded batcher with ordered, token-chained uploads.
"""

from __future__ import annotations

from ._version import __version__
from .core.batcher import BatchPolicy, Batcher, batch_events
from .core.concurrency import Channel
from .core.errors import (
    BootstrapError,
    ConfigurationError,
    LogshipError,
    RemoteError,
    UploadError,
)
from .core.events import EVENT_OVERHEAD_BYTES, LogEvent
from .core.ingest import Ingestor
from .core.pipeline import Pipeline, PipelineResult
from .core.settings import Settings, resolve_stream_name
from .core.uploader import StreamCursor, Uploader

__all__ = [
    "__version__",
    "VERSION",
    "BatchPolicy",
    "Batcher",
    "batch_events",
    "BootstrapError",
    "Channel",
    "ConfigurationError",
    "EVENT_OVERHEAD_BYTES",
    "Ingestor",
    "LogEvent",
    "LogshipError",
    "Pipeline",
    "PipelineResult",
    "RemoteError",
    "Settings",
    "StreamCursor",
    "Uploader",
    "UploadError",
    "resolve_stream_name",
]

VERSION = __version__
