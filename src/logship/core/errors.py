"""
Error taxonomy for logship.

Every failure that can end a run is expressed as a ``LogshipError`` subclass
carrying a category, a severity and a small context mapping. The CLI turns any
``LogshipError`` into ``Error: <message>`` on stderr and exit code 1.

Local recovery is limited to "log group already exists"; that case never
becomes an exception (the remote client reports it as a result value).
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    CONFIG = "config"
    BOOTSTRAP = "bootstrap"
    UPLOAD = "upload"
    INPUT = "input"


class ErrorSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


def create_error_context(**fields: Any) -> dict[str, Any]:
    """Build an error context, dropping ``None`` values and stamping a time."""
    context = {k: v for k, v in fields.items() if v is not None}
    context.setdefault("ts", time.time())
    return context


class LogshipError(Exception):
    """Base class for all logship failures."""

    default_category: ErrorCategory = ErrorCategory.CONFIG
    default_severity: ErrorSeverity = ErrorSeverity.FATAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.context = create_error_context(**(context or {}))
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": dict(self.context),
        }
        if self.__cause__ is not None:
            data["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return data


class ConfigurationError(LogshipError):
    default_category = ErrorCategory.CONFIG


class BootstrapError(LogshipError):
    """Failure to ensure the log group or to discover/create the stream."""

    default_category = ErrorCategory.BOOTSTRAP


class UploadError(LogshipError):
    """A put-events call failed and no retry attempts remain."""

    default_category = ErrorCategory.UPLOAD

    def __init__(
        self,
        message: str,
        *,
        batch_size: int,
        error_code: str | None = None,
        attempts: int = 1,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            context={
                "batch_size": batch_size,
                "error_code": error_code,
                "attempts": attempts,
            },
            cause=cause,
        )
        self.batch_size = batch_size
        self.error_code = error_code
        self.attempts = attempts


class RemoteError(LogshipError):
    """A call to the remote log service failed.

    ``code`` is the service error code (e.g. ``InvalidSequenceTokenException``)
    or the transport exception name. ``retryable`` marks throttling, service
    and connection failures that may succeed on a later attempt.
    """

    default_category = ErrorCategory.UPLOAD
    default_severity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        *,
        code: str,
        operation: str | None = None,
        retryable: bool = False,
        expected_sequence_token: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            context={"code": code, "operation": operation},
            cause=cause,
        )
        self.code = code
        self.operation = operation
        self.retryable = retryable
        self.expected_sequence_token = expected_sequence_token


class ChannelClosed(LogshipError):
    """Raised when putting into a channel that has already been closed."""

    default_category = ErrorCategory.INPUT
    default_severity = ErrorSeverity.WARNING
