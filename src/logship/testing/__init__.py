"""
Testing utilities for logship.

Provides an in-memory remote log service, a capturing mirror, event
factories and pytest fixtures.

Example:
    from logship.testing import InMemoryLogsClient

    async def test_upload():
        client = InMemoryLogsClient(tokens=["t1"])
        ...
"""

from .factories import create_events, create_log_event, feed, stdin_bytes
from .mocks import CapturingMirror, InMemoryLogsClient, PutRequest

__all__ = [
    "CapturingMirror",
    "InMemoryLogsClient",
    "PutRequest",
    "create_events",
    "create_log_event",
    "feed",
    "stdin_bytes",
]
