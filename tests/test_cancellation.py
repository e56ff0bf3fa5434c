"""Tests for CancellationToken."""

import asyncio

import pytest

from vscode_bridge.cancellation import CancellationToken
from vscode_bridge.errors import RequestCancelledError


class TestCancellationToken:
    def test_starts_uncancelled(self) -> None:
        token = CancellationToken("r1")

        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self) -> None:
        token = CancellationToken("r1")
        token.cancel()

        assert token.cancelled
        with pytest.raises(RequestCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.request_id == "r1"

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        await asyncio.wait_for(token.wait(), timeout=1.0)
        assert token.cancelled


class TestGuard:
    """guard() races an operation against the token."""

    @pytest.mark.asyncio
    async def test_returns_result(self) -> None:
        async def work() -> int:
            return 42

        assert await CancellationToken().guard(work()) == 42

    @pytest.mark.asyncio
    async def test_propagates_operation_error(self) -> None:
        async def work() -> None:
            raise ValueError("editor failed")

        with pytest.raises(ValueError, match="editor failed"):
            await CancellationToken().guard(work())

    @pytest.mark.asyncio
    async def test_cancel_wins(self) -> None:
        token = CancellationToken("r9")
        release = asyncio.Event()
        finished = []

        async def slow() -> None:
            await release.wait()
            finished.append(True)

        asyncio.get_running_loop().call_later(0.01, token.cancel)
        with pytest.raises(RequestCancelledError):
            await token.guard(slow())

        # Abandoned, not stopped
        release.set()
        await asyncio.sleep(0.01)
        assert finished == [True]

    @pytest.mark.asyncio
    async def test_already_cancelled(self) -> None:
        token = CancellationToken("r9")
        token.cancel()
        release = asyncio.Event()

        with pytest.raises(RequestCancelledError):
            await token.guard(release.wait())
        release.set()
