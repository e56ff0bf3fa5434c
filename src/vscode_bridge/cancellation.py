"""Cooperative cancellation for editor-side handlers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from vscode_bridge.errors import RequestCancelledError

T = TypeVar("T")


class CancellationToken:
    """Signalled when the client abandons a request or its connection closes.

    Handlers may poll ``cancelled``, call ``raise_if_cancelled()`` between
    steps, or await ``wait()``. Cancelling does not stop an editor operation
    that is already running; it only lets the handler stop early.
    """

    def __init__(self, request_id: str = "") -> None:
        self.request_id = request_id
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError(self.request_id)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token fires first the operation is left running and
        RequestCancelledError is raised.
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        raise RequestCancelledError(self.request_id)
