"""Tests for error types."""

import pytest

from vscode_bridge import (
    BridgeConnectionError,
    BridgeError,
    BridgeTimeoutError,
    CommandFailedError,
    ConfigurationError,
    ConnectionLostError,
    InvalidParamsError,
    ProtocolError,
    RequestCancelledError,
    UnknownMethodError,
)


class TestErrorHierarchy:
    """All errors inherit from BridgeError."""

    @pytest.mark.parametrize(
        "error",
        [
            BridgeConnectionError("ws://localhost:3333"),
            ConnectionLostError(),
            BridgeTimeoutError("openFile", 10.0),
            ProtocolError("bad frame"),
            UnknownMethodError("nope"),
            InvalidParamsError("Missing required parameter: filePath"),
            RequestCancelledError("abc"),
            CommandFailedError("saveFile", "No active editor"),
            ConfigurationError("bad port"),
        ],
    )
    def test_inherits_bridge_error(self, error: Exception) -> None:
        assert isinstance(error, BridgeError)
        assert isinstance(error, Exception)


class TestBridgeConnectionError:
    def test_message(self) -> None:
        err = BridgeConnectionError("ws://localhost:3333")

        assert str(err) == (
            "Cannot connect to VSCode Bridge. Make sure VSCode is running and Bridge is active."
        )
        assert err.url == "ws://localhost:3333"
        assert err.reason is None

    def test_reason_appended(self) -> None:
        err = BridgeConnectionError("ws://localhost:3333", "connection refused")
        assert str(err).endswith("(connection refused)")


class TestBridgeTimeoutError:
    def test_attributes_and_message(self) -> None:
        err = BridgeTimeoutError("getFileContent", 10.0)

        assert err.method == "getFileContent"
        assert err.timeout_seconds == 10.0
        assert str(err).startswith("Timeout waiting for VSCode response")
        assert "getFileContent" in str(err)


class TestOtherErrors:
    def test_connection_lost_default_message(self) -> None:
        assert str(ConnectionLostError()) == "VSCode Bridge disconnected"

    def test_unknown_method(self) -> None:
        err = UnknownMethodError("doesNotExist")

        assert err.method == "doesNotExist"
        assert str(err) == "Unknown command: doesNotExist"

    def test_command_failed(self) -> None:
        err = CommandFailedError("saveFile", "No active editor")

        assert err.method == "saveFile"
        assert err.message == "No active editor"
        assert "saveFile" in str(err)

    def test_protocol_error_keeps_frame(self) -> None:
        assert ProtocolError("bad", frame="{oops").frame == "{oops"

    def test_request_cancelled(self) -> None:
        err = RequestCancelledError("abc")

        assert err.request_id == "abc"
        assert "abc" in str(err)
