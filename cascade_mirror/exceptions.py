"""Exception hierarchy for cascade-mirror.

All bridge errors inherit from MirrorError. Startup failures (endpoint
discovery, initial connection) are fatal; per-call failures are raised to the
immediate caller and converted to typed negative results by the evaluators.
"""

from typing import Any, Optional


class MirrorError(Exception):
    """Base exception for all cascade-mirror errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class EndpointNotFoundError(MirrorError):
    """No candidate port exposed a matching debug target.

    Raised only after every candidate port was tried.
    """

    def __init__(
        self,
        message: str,
        ports: Optional[list] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.ports = list(ports or [])


class CDPConnectionError(MirrorError):
    """WebSocket connection failures."""

    pass


class ConnectionFailedError(CDPConnectionError):
    """Initial connection failed.

    Raised when the WebSocket handshake to the debug endpoint cannot complete.
    """

    pass


class ConnectionClosedError(CDPConnectionError):
    """Connection closed while a call was outstanding."""

    pass


class NotConnectedError(CDPConnectionError):
    """Call attempted while the client is not in the connected state.

    Nothing is sent when this is raised.
    """

    pass


class CDPCommandError(MirrorError):
    """Command execution failures."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        error_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.method = method
        self.error_code = error_code


class CommandFailedError(CDPCommandError):
    """The peer answered a call with an error frame.

    The error payload is kept verbatim in ``error``.
    """

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        error_code: Optional[int] = None,
        error: Any = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, method=method, error_code=error_code, details=details)
        self.error = error


class CallTimeoutError(MirrorError):
    """Call did not receive a response within its timeout."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        timeout: Optional[float] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.method = method
        self.timeout = timeout

    def __str__(self):
        if self.method and self.timeout:
            return f"Call '{self.method}' timed out after {self.timeout}s"
        return self.message


class HostNotConnectedError(MirrorError):
    """Message delivery requested while the host connection is down."""

    pass
