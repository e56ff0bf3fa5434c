"""Editor-side command dispatcher.

CommandDispatcher binds one WebSocket listener on the bridge port, parses each
inbound frame as a request envelope, routes it by method name through the
MethodRegistry and writes back exactly one correlated response.

The dispatcher never lets a handler failure escape: unknown methods and
handler exceptions become failure responses, and the connection stays open.
The only frames that go unanswered are those that cannot be parsed, which
the sender experiences as a timeout.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from vscode_bridge.cancellation import CancellationToken
from vscode_bridge.config import DEFAULT_HOST, DEFAULT_PORT
from vscode_bridge.errors import ProtocolError
from vscode_bridge.protocol import (
    CANCEL_METHOD,
    BridgeRequest,
    BridgeResponse,
    decode_request,
)
from vscode_bridge.server.registry import MethodRegistry

logger = logging.getLogger(__name__)


class BridgeStatus(Enum):
    OFFLINE = "Offline"
    ONLINE = "Online"


class StatusIndicator:
    """Two-state online/offline display, like the editor's status bar item."""

    def __init__(self, label: str = "Claude MCP") -> None:
        self.label = label
        self._status = BridgeStatus.OFFLINE
        self._listeners: list[Callable[[BridgeStatus], None]] = []

    @property
    def status(self) -> BridgeStatus:
        return self._status

    @property
    def text(self) -> str:
        return f"$(robot) {self.label}: {self._status.value}"

    def on_change(self, listener: Callable[[BridgeStatus], None]) -> None:
        self._listeners.append(listener)

    def set_online(self) -> None:
        self._set(BridgeStatus.ONLINE)

    def set_offline(self) -> None:
        self._set(BridgeStatus.OFFLINE)

    def _set(self, status: BridgeStatus) -> None:
        if status is self._status:
            return
        self._status = status
        for listener in list(self._listeners):
            listener(status)


class CommandDispatcher:
    """Single bridge listener routing requests to registered methods.

    Any number of clients may connect; each response goes back on the
    connection that carried its request. The status indicator is ONLINE
    while at least one client is connected.

    Usage:
        dispatcher = CommandDispatcher(build_registry(editor), port=3333)
        await dispatcher.start()
        ...
        await dispatcher.stop()
    """

    def __init__(
        self,
        registry: MethodRegistry,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        status: StatusIndicator | None = None,
    ) -> None:
        self.registry = registry
        self.host = host
        self.port = port
        self.status = status or StatusIndicator()
        self._server: Server | None = None
        self._lock = asyncio.Lock()
        self._clients: set[ServerConnection] = set()
        # connection (None for direct on_frame calls) -> request id -> token
        self._in_flight: dict[ServerConnection | None, dict[str, CancellationToken]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def bound_port(self) -> int | None:
        """Port actually bound (differs from ``port`` only when port is 0)."""
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def start(self) -> None:
        """Bind the listener. Restarts cleanly if already running."""
        async with self._lock:
            if self._server is not None:
                logger.info("Bridge already running, restarting listener")
                await self._stop_locked()

            self._server = await serve(
                self._handle_connection,
                self.host,
                self.port,
                max_size=None,
            )
            logger.info("Bridge started on ws://%s:%s", self.host, self.bound_port)

    async def stop(self) -> None:
        """Close the listener and every client connection."""
        async with self._lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return

        for tokens in self._in_flight.values():
            for token in tokens.values():
                token.cancel()
        for task in list(self._tasks):
            task.cancel()

        server.close()
        await server.wait_closed()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._clients.clear()
        self.status.set_offline()
        logger.info("Bridge stopped")

    async def __aenter__(self) -> CommandDispatcher:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _handle_connection(self, ws: ServerConnection) -> None:
        """Serve one client until it disconnects."""
        self._clients.add(ws)
        self._in_flight[ws] = {}
        self.status.set_online()
        logger.info("MCP client connected: %s", ws.remote_address)

        try:
            async for message in ws:
                task = asyncio.create_task(self._serve_frame(message, ws))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        except ConnectionClosed as e:
            logger.debug("Client connection closed abnormally: %s", e)
        finally:
            # Handlers keep running, but nobody can receive their results
            for token in self._in_flight.pop(ws, {}).values():
                token.cancel()
            self._clients.discard(ws)
            if not self._clients:
                self.status.set_offline()
            logger.info("MCP client disconnected: %s", ws.remote_address)

    async def _serve_frame(self, raw: str | bytes, ws: ServerConnection) -> None:
        response = await self.on_frame(raw, ws)
        if response is None:
            return

        try:
            frame = response.to_json()
        except (TypeError, ValueError) as e:
            logger.warning("Result of request %s is not JSON-serializable: %s", response.id, e)
            frame = BridgeResponse.failure(
                response.id, f"Result is not JSON-serializable: {e}"
            ).to_json()

        try:
            await ws.send(frame)
        except ConnectionClosed:
            logger.debug("Client left before response %s was sent", response.id)

    async def on_frame(
        self,
        raw: str | bytes,
        connection: ServerConnection | None = None,
    ) -> BridgeResponse | None:
        """Handle one inbound frame.

        Args:
            raw: The frame payload.
            connection: Connection that carried the frame, used to scope
                cancellation. None when called directly.

        Returns:
            The response to send, or None if the frame could not be parsed.
        """
        try:
            request = decode_request(raw)
        except ProtocolError as e:
            logger.warning("Command parsing error: %s", e)
            return None

        logger.debug("Received command: %s (%s)", request.method, request.id)

        if request.method == CANCEL_METHOD:
            return self._cancel(request, connection)

        method = self.registry.lookup(request.method)
        if method is None:
            logger.warning("Unknown command: %s", request.method)
            return BridgeResponse.failure(request.id, f"Unknown command: {request.method}")

        request_key = str(request.id)
        token = CancellationToken(request_key)
        tokens = self._in_flight.setdefault(connection, {})
        tokens[request_key] = token
        try:
            value = await method.invoke(request.params, token)
        except Exception as e:
            logger.warning("Command %s failed: %s", request.method, e)
            return BridgeResponse.failure(request.id, _error_message(e))
        finally:
            if tokens.get(request_key) is token:
                del tokens[request_key]
            if not tokens and connection is not None and connection not in self._clients:
                self._in_flight.pop(connection, None)

        return BridgeResponse.success(request.id, value)

    def _cancel(
        self, request: BridgeRequest, connection: ServerConnection | None
    ) -> BridgeResponse:
        target = str(request.params.get("id", ""))
        token = self._in_flight.get(connection, {}).get(target)
        if token is not None:
            token.cancel()
            logger.info("Cancelled request %s", target)
        return BridgeResponse.success(
            request.id, {"success": True, "cancelled": token is not None}
        )


def _error_message(error: Exception) -> str:
    return str(error) or type(error).__name__
