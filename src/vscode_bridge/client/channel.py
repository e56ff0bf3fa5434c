"""Correlated request/response channel over the bridge socket.

Every outbound request gets a fresh correlation id and an entry in the
pending table. The entry is removed when the correlated response arrives,
when its timer fires, or when the socket closes. Responses are matched by id
only, never by arrival order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from vscode_bridge.client.connection import BridgeConnection
from vscode_bridge.config import DEFAULT_REQUEST_TIMEOUT
from vscode_bridge.errors import (
    BridgeConnectionError,
    BridgeError,
    BridgeTimeoutError,
    CommandFailedError,
    ConnectionLostError,
    ProtocolError,
)
from vscode_bridge.protocol import (
    CANCEL_METHOD,
    BridgeRequest,
    BridgeResponse,
    decode_response,
)

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """An outstanding request awaiting its response."""

    method: str
    future: asyncio.Future[BridgeResponse]
    timer: asyncio.TimerHandle | None = None


class RequestChannel:
    """Multiplexes concurrent requests over one BridgeConnection.

    Usage:
        channel = RequestChannel(connection, default_timeout=10.0)
        result = await channel.send("getWorkspaceInfo")
        content = await channel.call("getFileContent", {"filePath": "/tmp/a.py"})
    """

    def __init__(
        self,
        connection: BridgeConnection,
        *,
        default_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        cancel_on_timeout: bool = True,
    ) -> None:
        """Attach to a connection.

        Args:
            connection: The shared bridge connection. The channel subscribes
                to its inbound frames and close events.
            default_timeout: Seconds to wait for a response when send() is
                not given an explicit timeout.
            cancel_on_timeout: Send a $/cancelRequest frame for requests that
                time out so the editor can abandon the handler.
        """
        self._connection = connection
        self.default_timeout = default_timeout
        self.cancel_on_timeout = cancel_on_timeout
        self._pending: dict[str, PendingRequest] = {}
        self._background: set[asyncio.Task[None]] = set()

        connection.on_message(self.on_frame)
        connection.on_close(self.fail_all)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and return the raw ``result`` of its response.

        Error-shaped results (``{"error": ...}``) are returned as-is; use
        call() to have them raised.

        Raises:
            BridgeConnectionError: If the bridge cannot be reached.
            BridgeTimeoutError: If no response arrives within the timeout.
            ConnectionLostError: If the socket closes while waiting.
        """
        response = await self.request(method, params, timeout)
        return response.result

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Like send(), but raise CommandFailedError for failed commands."""
        response = await self.request(method, params, timeout)
        if response.is_error:
            raise CommandFailedError(method, response.error or "")
        return response.result

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> BridgeResponse:
        """Send a request and return the full tagged response."""
        timeout = self.default_timeout if timeout is None else timeout

        if not await self._connection.ensure_connected():
            raise BridgeConnectionError(self._connection.url)

        request = BridgeRequest(method=method, params=dict(params or {}))
        if request.id in self._pending:
            raise ProtocolError(f"Request id {request.id} is already pending")
        try:
            frame = request.to_json()
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Params for '{method}' are not JSON-serializable: {e}") from e

        loop = asyncio.get_running_loop()
        entry = PendingRequest(method=method, future=loop.create_future())
        self._pending[request.id] = entry
        entry.timer = loop.call_later(timeout, self._expire, request.id, timeout)

        try:
            await self._connection.send_frame(frame)
            logger.debug("-> %s %s", request.id, method)
            return await entry.future
        except BaseException:
            # Write failed or the caller was cancelled: nobody will wait for it
            self._discard(request.id)
            raise

    def on_frame(self, raw: str) -> None:
        """Resolve the pending request correlated with an inbound frame."""
        try:
            response = decode_response(raw)
        except ProtocolError as e:
            logger.warning("Dropping malformed frame from bridge: %s", e)
            return

        entry = self._pending.pop(str(response.id), None)
        if entry is None:
            logger.debug("Dropping response for unknown request %s", response.id)
            return

        if entry.timer is not None:
            entry.timer.cancel()
        if not entry.future.done():
            entry.future.set_result(response)
        logger.debug("<- %s %s", response.id, entry.method)

    def fail_all(self, error: BridgeError) -> None:
        """Fail and remove every pending request (connection closed)."""
        pending, self._pending = self._pending, {}
        if pending:
            logger.warning("Failing %d pending request(s): %s", len(pending), error)
        for entry in pending.values():
            if entry.timer is not None:
                entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(ConnectionLostError(str(error)))

    def _discard(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()

    def _expire(self, request_id: str, timeout: float) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return

        logger.warning("Request %s (%s) timed out after %ss", request_id, entry.method, timeout)
        if not entry.future.done():
            entry.future.set_exception(BridgeTimeoutError(entry.method, timeout))

        if self.cancel_on_timeout and self._connection.is_open:
            task = asyncio.ensure_future(self._send_cancel(request_id))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _send_cancel(self, request_id: str) -> None:
        cancel = BridgeRequest(method=CANCEL_METHOD, params={"id": request_id})
        try:
            await self._connection.send_frame(cancel.to_json())
        except BridgeError as e:
            logger.debug("Could not send cancel for %s: %s", request_id, e)
