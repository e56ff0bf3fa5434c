"""Editor-side half of the bridge: listener, routing and method handlers."""

from vscode_bridge.server.dispatcher import BridgeStatus, CommandDispatcher, StatusIndicator
from vscode_bridge.server.handlers import METHODS, EditorHandlers, build_registry
from vscode_bridge.server.registry import Method, MethodRegistry

__all__ = [
    "METHODS",
    "BridgeStatus",
    "CommandDispatcher",
    "EditorHandlers",
    "Method",
    "MethodRegistry",
    "StatusIndicator",
    "build_registry",
]
