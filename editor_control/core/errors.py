# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Error types for the editor control plane.

This module provides:
- Error categories matching the four failure families of the bridge
  (protocol, host command, transport, correlation timeout)
- A base exception carrying category, severity and a correlation id
- ``log_failure``, which logs a handled error at its severity along with its
  structured ``to_dict`` form

Every error exposes ``message``, the human-readable string sent back to the
caller. ``str(error)`` returns the same text so host failures surface verbatim.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""

    # Protocol errors (reported on the same transport, connection stays open)
    PROTOCOL_INVALID = "protocol_invalid"
    BAD_REQUEST = "bad_request"

    # Host collaborator errors (never retried)
    HOST_COMMAND = "host_command"

    # Transport errors
    TRANSPORT = "transport"
    NOT_CONNECTED = "not_connected"
    CONNECTION_CLOSED = "connection_closed"

    # Correlation errors
    CORRELATION_TIMEOUT = "correlation_timeout"

    # Lifecycle
    SERVER_STATE = "server_state"

    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = "warning"
    ERROR = "error"

    @property
    def log_level(self) -> int:
        return logging.WARNING if self is ErrorSeverity.WARNING else logging.ERROR


# =============================================================================
# Custom Exception Types
# =============================================================================


class EditorControlError(Exception):
    """Base exception for all editor control errors.

    Provides structured error information including:
    - Error category and severity
    - Correlation ID for tracking
    - Recovery suggestions
    - Original exception chain
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return self.message


class ProtocolError(EditorControlError):
    """Malformed envelope, unknown message type or invalid field."""

    def __init__(self, message: str, message_type: Optional[str] = None, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.PROTOCOL_INVALID)
        kwargs.setdefault("severity", ErrorSeverity.WARNING)
        super().__init__(message, **kwargs)
        self.message_type = message_type
        self.details["message_type"] = message_type


class BadRequestError(ProtocolError):
    """A required request field is missing. Rejected before the host is called."""

    def __init__(
        self,
        message: str,
        missing_fields: Optional[List[str]] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            category=ErrorCategory.BAD_REQUEST,
            recovery_hint="Include the required fields in the request body.",
            **kwargs,
        )
        self.missing_fields = missing_fields or []
        self.details["missing_fields"] = self.missing_fields


class HostCommandError(EditorControlError):
    """The editor host failed while executing a command."""

    def __init__(self, message: str, command: Optional[str] = None, **kwargs: Any):
        super().__init__(message, category=ErrorCategory.HOST_COMMAND, **kwargs)
        self.command = command
        self.details["command"] = command


class TransportError(EditorControlError):
    """Socket or HTTP level failure."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.TRANSPORT)
        kwargs.setdefault(
            "recovery_hint",
            "Check that the editor is running and the control servers are started.",
        )
        super().__init__(message, **kwargs)


class NotConnectedError(TransportError):
    """An operation needed an open WebSocket but there is none."""

    def __init__(self, message: str = "WebSocket is not connected", **kwargs: Any):
        super().__init__(message, category=ErrorCategory.NOT_CONNECTED, **kwargs)


class ConnectionClosedError(TransportError):
    """A pending call was cancelled because its connection went away."""

    def __init__(self, message: str = "connection closed", **kwargs: Any):
        super().__init__(message, category=ErrorCategory.CONNECTION_CLOSED, **kwargs)


class CorrelationTimeoutError(EditorControlError):
    """No result arrived for a correlated request within its deadline."""

    def __init__(
        self,
        request_id: Optional[int] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ):
        message = (
            f"Request {request_id} timed out after {timeout:g} seconds"
            if timeout is not None
            else f"Request {request_id} timed out"
        )
        super().__init__(
            message,
            category=ErrorCategory.CORRELATION_TIMEOUT,
            recovery_hint="Increase request_timeout or check that the editor is responsive.",
            **kwargs,
        )
        self.request_id = request_id
        self.timeout = timeout
        self.details["request_id"] = request_id
        self.details["timeout"] = timeout


class ServerAlreadyRunningError(EditorControlError):
    """A server handle was started twice."""

    def __init__(self, server_name: str, **kwargs: Any):
        super().__init__(
            f"{server_name} server is already running",
            category=ErrorCategory.SERVER_STATE,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )
        self.server_name = server_name


def error_message(exc: BaseException) -> str:
    """Human-readable message for any exception, used on the wire."""
    if isinstance(exc, EditorControlError):
        return exc.message
    text = str(exc)
    return text or exc.__class__.__name__


def log_failure(log: logging.Logger, context: str, error: EditorControlError) -> None:
    """Log a handled failure at its severity; the structured form goes to debug."""
    log.log(error.severity.log_level, f"{context}: {error.message}")
    log.debug(f"{context} [{error.correlation_id}]: {error.to_dict()}")
