"""
Async-first pipeline metrics for logship.

Implements a small set of Prometheus-compatible counters and a histogram for
ingestion and upload activity.

Design goals:
- Pure async/await, no blocking I/O
- Zero global state; every pipeline owns its collector
- In-memory counters always tracked; Prometheus export only when enabled
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


@dataclass
class PipelineMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    events_ingested: int = 0
    events_uploaded: int = 0
    batches_uploaded: int = 0
    bytes_uploaded: int = 0
    upload_retries: int = 0
    upload_errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class MetricsCollector:
    """Pipeline-scoped async metrics collector.

    When metrics are disabled all Prometheus calls are skipped while the
    basic in-memory counters are still maintained.
    """

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = PipelineMetrics()

        self._c_ingested: Any | None = None
        self._c_uploaded: Any | None = None
        self._c_batches: Any | None = None
        self._c_bytes: Any | None = None
        self._c_retries: Any | None = None
        self._c_errors: Any | None = None
        self._h_upload_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry to avoid global duplication in tests
            self._registry = CollectorRegistry()
            self._c_ingested = Counter(
                "logship_events_ingested_total",
                "Total number of non-empty input lines turned into events",
                registry=self._registry,
            )
            self._c_uploaded = Counter(
                "logship_events_uploaded_total",
                "Total number of events accepted by the remote service",
                registry=self._registry,
            )
            self._c_batches = Counter(
                "logship_batches_uploaded_total",
                "Total number of successful put-events calls",
                registry=self._registry,
            )
            self._c_bytes = Counter(
                "logship_bytes_uploaded_total",
                "Accounted bytes (message + per-event overhead) uploaded",
                registry=self._registry,
            )
            self._c_retries = Counter(
                "logship_upload_retries_total",
                "Total number of upload retries",
                ["code"],
                registry=self._registry,
            )
            self._c_errors = Counter(
                "logship_upload_errors_total",
                "Total number of uploads that failed after all attempts",
                registry=self._registry,
            )
            self._h_upload_latency = Histogram(
                "logship_upload_seconds",
                "Latency of a single put-events call including retries",
                buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_event_ingested(self) -> None:
        async with self._lock:
            self._state.events_ingested += 1
        if self._c_ingested is not None:
            self._c_ingested.inc()

    async def record_batch_uploaded(
        self,
        *,
        events: int,
        accounted_bytes: int,
        latency_seconds: float | None = None,
    ) -> None:
        async with self._lock:
            self._state.batches_uploaded += 1
            self._state.events_uploaded += events
            self._state.bytes_uploaded += accounted_bytes
        if not self._enabled:
            return
        if self._c_batches is not None:
            self._c_batches.inc()
        if self._c_uploaded is not None:
            self._c_uploaded.inc(events)
        if self._c_bytes is not None:
            self._c_bytes.inc(accounted_bytes)
        if latency_seconds is not None and self._h_upload_latency is not None:
            self._h_upload_latency.observe(latency_seconds)

    async def record_upload_retry(self, *, code: str | None = None) -> None:
        async with self._lock:
            self._state.upload_retries += 1
        if self._c_retries is not None:
            self._c_retries.labels(code=code or "unknown").inc()

    async def record_upload_error(self) -> None:
        async with self._lock:
            self._state.upload_errors += 1
        if self._c_errors is not None:
            self._c_errors.inc()

    def exposition(self) -> str | None:
        """Prometheus text exposition of the registry, or ``None`` when disabled."""
        if self._registry is None:
            return None
        return generate_latest(self._registry).decode("utf-8")

    async def snapshot(self) -> PipelineMetrics:
        # Lightweight copy without exposing internals
        async with self._lock:
            return PipelineMetrics(**self._state.to_dict())
