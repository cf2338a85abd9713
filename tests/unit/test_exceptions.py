"""Unit tests for the exception hierarchy.

Tests exception types, inheritance, attributes, and string representations.
"""

import pytest
from cascade_mirror.exceptions import (
    CallTimeoutError,
    CDPCommandError,
    CDPConnectionError,
    CommandFailedError,
    ConnectionClosedError,
    ConnectionFailedError,
    EndpointNotFoundError,
    HostNotConnectedError,
    MirrorError,
    NotConnectedError,
)


@pytest.mark.unit
class TestMirrorError:
    """Test base MirrorError exception."""

    def test_base_exception_message(self):
        """Test basic error message."""
        error = MirrorError("Test error")
        assert str(error) == "Test error"
        assert error.message == "Test error"
        assert error.details == {}

    def test_base_exception_with_details(self):
        """Test error with details dict."""
        error = MirrorError("Test error", details={"key": "value", "count": 42})
        assert "Test error" in str(error)
        assert "key=value" in str(error)
        assert "count=42" in str(error)


@pytest.mark.unit
class TestEndpointNotFoundError:
    def test_keeps_ports(self):
        error = EndpointNotFoundError("CDP not found", ports=[9000, 9001])
        assert isinstance(error, MirrorError)
        assert error.ports == [9000, 9001]

    def test_ports_default_empty(self):
        assert EndpointNotFoundError("CDP not found").ports == []


@pytest.mark.unit
class TestConnectionErrors:
    """Test connection-related exceptions."""

    @pytest.mark.parametrize(
        "error_class", [ConnectionFailedError, ConnectionClosedError, NotConnectedError]
    )
    def test_inheritance(self, error_class):
        error = error_class("boom")
        assert isinstance(error, CDPConnectionError)
        assert isinstance(error, MirrorError)

    def test_connection_failed_error(self):
        """Test ConnectionFailedError for initial connection failures."""
        error = ConnectionFailedError(
            "Failed to connect",
            details={"url": "ws://localhost:9000", "reason": "refused"},
        )
        assert "Failed to connect" in str(error)
        assert error.details["url"] == "ws://localhost:9000"


@pytest.mark.unit
class TestCommandErrors:
    """Test command execution exceptions."""

    def test_command_error_with_method(self):
        error = CDPCommandError(
            "Invalid expression", method="Runtime.evaluate", error_code=-32000
        )
        assert isinstance(error, MirrorError)
        assert error.method == "Runtime.evaluate"
        assert error.error_code == -32000

    def test_command_failed_error_keeps_payload(self):
        payload = {"code": -32000, "message": "Cannot find context with specified id"}
        error = CommandFailedError(payload["message"], error_code=-32000, error=payload)
        assert isinstance(error, CDPCommandError)
        assert error.error is payload
        assert "Cannot find context" in str(error)


@pytest.mark.unit
class TestCallTimeoutError:
    """Test timeout exception."""

    def test_basic(self):
        error = CallTimeoutError("Call timed out")
        assert isinstance(error, MirrorError)
        assert str(error) == "Call timed out"

    def test_with_method_and_timeout(self):
        error = CallTimeoutError("Call timed out", method="Runtime.evaluate", timeout=30.0)
        assert "Runtime.evaluate" in str(error)
        assert "30" in str(error)
        assert error.method == "Runtime.evaluate"
        assert error.timeout == 30.0


@pytest.mark.unit
class TestHostNotConnectedError:
    def test_inheritance(self):
        error = HostNotConnectedError("CDP not connected")
        assert isinstance(error, MirrorError)
        assert not isinstance(error, CDPConnectionError)
