"""
Structured internal diagnostics.

Diagnostics are flat JSON objects written to stderr, one per line. Stdout is
reserved for the uploaded-event mirror, so nothing here may ever touch it.

Emission is gated by ``core.internal_logging_enabled``; the flag is read from
settings once and cached. Tests swap the writer with ``set_writer_for_tests``
and clear the cache with ``_reset_for_tests``.
"""

from __future__ import annotations

import sys
import time
from typing import Any, Callable

import orjson

Writer = Callable[[dict[str, Any]], None]

_internal_logging_enabled: bool | None = None
_forced: bool | None = None


def _default_writer(payload: dict[str, Any]) -> None:
    data = orjson.dumps(payload, default=str)
    buf = sys.stderr.buffer if hasattr(sys.stderr, "buffer") else None
    if buf is not None:
        buf.write(data + b"\n")
        buf.flush()
    else:  # pragma: no cover - text-only stderr replacements
        sys.stderr.write(data.decode("utf-8") + "\n")
        sys.stderr.flush()


_writer: Writer = _default_writer


def set_writer_for_tests(writer: Writer) -> None:
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _writer, _internal_logging_enabled, _forced
    _writer = _default_writer
    _internal_logging_enabled = None
    _forced = None


def force_enabled(enabled: bool | None) -> None:
    """Override the settings flag (used by the CLI ``--verbose`` switch)."""
    global _forced
    _forced = enabled


def is_enabled() -> bool:
    global _internal_logging_enabled
    if _forced is not None:
        return _forced
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(
                Settings().core.internal_logging_enabled
            )
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def _emit(level: str, component: str, message: str, **fields: Any) -> None:
    if not is_enabled():
        return
    payload: dict[str, Any] = {
        "ts": time.time(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # Diagnostics never break the pipeline
        pass


def debug(component: str, message: str, **fields: Any) -> None:
    _emit("DEBUG", component, message, **fields)


def warn(component: str, message: str, **fields: Any) -> None:
    _emit("WARN", component, message, **fields)
