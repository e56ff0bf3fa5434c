"""Connection lifecycle for the MCP-side bridge socket.

BridgeConnection owns the single WebSocket to the editor and its state:

    DISCONNECTED --ensure_connected()--> CONNECTING --open--> OPEN
    CONNECTING --error--> DISCONNECTED
    OPEN --close--> DISCONNECTED

There is no OPEN -> CONNECTING edge. A dropped socket stays DISCONNECTED until
the next ensure_connected() call dials again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from vscode_bridge.errors import ConnectionLostError

logger = logging.getLogger(__name__)

MessageListener = Callable[[str], None]
CloseListener = Callable[[ConnectionLostError], None]
StateListener = Callable[["ConnectionState"], None]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class BridgeConnection:
    """One shared, lazily established WebSocket to the editor bridge.

    Usage:
        connection = BridgeConnection("ws://localhost:3333")
        connection.on_message(channel.on_frame)
        connection.on_close(channel.fail_all)

        if await connection.ensure_connected():
            await connection.send_frame(request.to_json())

        await connection.close()
    """

    def __init__(self, url: str, *, connect_timeout: float = 5.0) -> None:
        """Initialize without dialing.

        Args:
            url: Bridge WebSocket URL (e.g., "ws://localhost:3333").
            connect_timeout: Upper bound for opening the socket, in seconds.
        """
        self.url = url
        self.connect_timeout = connect_timeout
        self._state = ConnectionState.DISCONNECTED
        self._ws: ClientConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._connect_task: asyncio.Task[bool] | None = None
        self._message_listeners: list[MessageListener] = []
        self._close_listeners: list[CloseListener] = []
        self._state_listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    def on_message(self, listener: MessageListener) -> None:
        """Register a callback for every inbound text frame."""
        self._message_listeners.append(listener)

    def on_close(self, listener: CloseListener) -> None:
        """Register a callback run once each time an open socket closes."""
        self._close_listeners.append(listener)

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("Bridge connection %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._state_listeners):
            listener(state)

    async def ensure_connected(self) -> bool:
        """Make sure the socket is OPEN, dialing if needed.

        Returns:
            True if the socket is open, False if the connect attempt failed.
            Concurrent callers share a single in-flight attempt.
        """
        if self._state is ConnectionState.OPEN:
            return True

        if self._connect_task is None:
            self._connect_task = asyncio.create_task(self._connect())
        return await asyncio.shield(self._connect_task)

    async def _connect(self) -> bool:
        self._set_state(ConnectionState.CONNECTING)
        try:
            ws = await connect(
                self.url,
                open_timeout=self.connect_timeout,
                max_size=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning("VSCode connection error (%s): %s", self.url, str(e) or type(e).__name__)
            self._set_state(ConnectionState.DISCONNECTED)
            return False
        finally:
            self._connect_task = None

        self._ws = ws
        self._set_state(ConnectionState.OPEN)
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.info("Connected to VSCode Bridge at %s", self.url)
        return True

    async def _read_loop(self, ws: ClientConnection) -> None:
        """Forward inbound frames until the socket closes, then clean up."""
        try:
            async for message in ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                for listener in list(self._message_listeners):
                    try:
                        listener(message)
                    except Exception:
                        logger.exception("Bridge message listener failed")
        except ConnectionClosed as e:
            logger.debug("Bridge socket closed abnormally: %s", e)
        finally:
            self._handle_closed(ws)

    def _handle_closed(self, ws: ClientConnection) -> None:
        """Single cleanup path for peer close, network loss and close()."""
        if self._ws is not ws:
            return
        self._ws = None
        self._reader = None
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("VSCode Bridge disconnected")

        error = ConnectionLostError()
        for listener in list(self._close_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Bridge close listener failed")

    async def send_frame(self, text: str) -> None:
        """Write one frame.

        Raises:
            ConnectionLostError: If the socket is not open or the write fails.
        """
        ws = self._ws
        if self._state is not ConnectionState.OPEN or ws is None:
            raise ConnectionLostError("VSCode Bridge is not connected")
        try:
            await ws.send(text)
        except ConnectionClosed as e:
            raise ConnectionLostError() from e

    async def close(self) -> None:
        """Close the socket for orderly shutdown.

        Pending requests are failed through the same path as an unexpected
        close. Safe to call when already disconnected.
        """
        if self._connect_task is not None:
            await asyncio.shield(self._connect_task)

        ws, reader = self._ws, self._reader
        if ws is None:
            return
        await ws.close()
        if reader is not None:
            await reader
