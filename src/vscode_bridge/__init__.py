"""vscode-bridge: Relay MCP tool calls to a code editor over a local WebSocket."""

# MCP side
from vscode_bridge.client import BridgeClient, BridgeConnection, ConnectionState, RequestChannel
from vscode_bridge.config import BridgeConfig

# Editor side
from vscode_bridge.editor import EditorAPI, HeadlessEditor

# All errors (foundational)
from vscode_bridge.errors import (
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

# Wire envelopes
from vscode_bridge.protocol import BridgeRequest, BridgeResponse
from vscode_bridge.server import CommandDispatcher, MethodRegistry, build_registry

__version__ = "0.1.0"

__all__ = [
    # Client
    "BridgeClient",
    "BridgeConnection",
    "ConnectionState",
    "RequestChannel",
    "BridgeConfig",
    # Server
    "CommandDispatcher",
    "MethodRegistry",
    "build_registry",
    "EditorAPI",
    "HeadlessEditor",
    # Protocol
    "BridgeRequest",
    "BridgeResponse",
    # Errors
    "BridgeError",
    "BridgeConnectionError",
    "ConnectionLostError",
    "BridgeTimeoutError",
    "ProtocolError",
    "UnknownMethodError",
    "InvalidParamsError",
    "RequestCancelledError",
    "CommandFailedError",
    "ConfigurationError",
]
