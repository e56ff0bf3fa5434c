"""MCP-side half of the bridge: connection lifecycle and request correlation."""

from vscode_bridge.client.channel import PendingRequest, RequestChannel
from vscode_bridge.client.client import BridgeClient
from vscode_bridge.client.connection import BridgeConnection, ConnectionState

__all__ = [
    "BridgeClient",
    "BridgeConnection",
    "ConnectionState",
    "PendingRequest",
    "RequestChannel",
]
