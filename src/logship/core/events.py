"""
Log event model.

A ``LogEvent`` is one non-empty input line paired with the wall-clock time
(milliseconds since the Unix epoch) at which it was read. Events are frozen
once built by the ingestor.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

# Per-event overhead charged by CloudWatch Logs against the batch byte limit
EVENT_OVERHEAD_BYTES = 26


def now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class LogEvent:
    message: str
    timestamp_ms: int

    def __post_init__(self) -> None:
        if not self.message:
            raise ValueError("Log event message cannot be empty")
        if self.timestamp_ms < 0:
            raise ValueError("Log event timestamp must be non-negative")

    @property
    def payload_size(self) -> int:
        """UTF-8 byte length of the message."""
        return len(self.message.encode("utf-8"))

    @property
    def accounted_size(self) -> int:
        """Bytes this event contributes towards a batch's ``max_bytes``."""
        return self.payload_size + EVENT_OVERHEAD_BYTES

    def to_wire(self) -> dict[str, Any]:
        """Shape expected by ``PutLogEvents`` in its ``logEvents`` list."""
        return {"timestamp": self.timestamp_ms, "message": self.message}


def batch_accounted_size(batch: list[LogEvent]) -> int:
    return sum(event.accounted_size for event in batch)
