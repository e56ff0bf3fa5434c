"""MCP-side bridge client.

BridgeClient owns exactly one BridgeConnection and one RequestChannel for the
process. The MCP server calls send_command() once per tool invocation.

Usage:
    async with BridgeClient(BridgeConfig(port=3333)) as client:
        info = await client.send_command("getWorkspaceInfo")
"""

from __future__ import annotations

from typing import Any

from vscode_bridge.client.channel import RequestChannel
from vscode_bridge.client.connection import BridgeConnection, ConnectionState
from vscode_bridge.config import BridgeConfig


class BridgeClient:
    """Upstream interface of the bridge: sendCommand(method, params) -> result."""

    def __init__(self, config: BridgeConfig | None = None) -> None:
        self.config = config or BridgeConfig()
        self.connection = BridgeConnection(
            self.config.url,
            connect_timeout=self.config.connect_timeout,
        )
        self.channel = RequestChannel(
            self.connection,
            default_timeout=self.config.request_timeout,
            cancel_on_timeout=self.config.cancel_on_timeout,
        )

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    async def connect(self) -> bool:
        """Open the socket now instead of on the first command."""
        return await self.connection.ensure_connected()

    async def send_command(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Relay one command to the editor and return its raw result."""
        return await self.channel.send(method, params, timeout)

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Relay one command, raising CommandFailedError if the editor reports failure."""
        return await self.channel.call(method, params, timeout)

    async def close(self) -> None:
        await self.connection.close()

    async def __aenter__(self) -> BridgeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
