"""Error types for vscode-bridge.

All errors inherit from BridgeError for easy catching at the MCP tool layer.
"""

from typing import Any

CONNECT_HINT = "Make sure VSCode is running and Bridge is active."


class BridgeError(Exception):
    """Base class for all vscode-bridge errors."""

    pass


class BridgeConnectionError(BridgeError):
    """Raised when the bridge socket cannot be opened."""

    def __init__(self, url: str, reason: str | None = None) -> None:
        self.url = url
        self.reason = reason
        msg = f"Cannot connect to VSCode Bridge. {CONNECT_HINT}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ConnectionLostError(BridgeError):
    """Raised for requests still pending when the bridge socket closes."""

    def __init__(self, message: str = "VSCode Bridge disconnected") -> None:
        super().__init__(message)


class BridgeTimeoutError(BridgeError):
    """Raised when no correlated response arrives within the timeout."""

    def __init__(self, method: str, timeout_seconds: float) -> None:
        self.method = method
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timeout waiting for VSCode response ({method}, {timeout_seconds}s)"
        )


class ProtocolError(BridgeError):
    """Raised when a frame is not a valid bridge envelope."""

    def __init__(self, message: str, frame: Any = None) -> None:
        self.frame = frame
        super().__init__(message)


class UnknownMethodError(BridgeError):
    """Raised when a method name has no registry entry."""

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Unknown command: {method}")


class InvalidParamsError(BridgeError):
    """Raised by a handler when a required parameter is missing or malformed."""

    pass


class RequestCancelledError(BridgeError):
    """Raised inside a handler whose request the client abandoned."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id} was cancelled")


class CommandFailedError(BridgeError):
    """Raised by RequestChannel.call() when the editor reports a failure."""

    def __init__(self, method: str, message: str) -> None:
        self.method = method
        self.message = message
        super().__init__(f"Command '{method}' failed: {message}")


class ConfigurationError(BridgeError):
    """Error in configuration (bad value, unreadable file)."""

    pass
