"""Tests for RequestChannel correlation, timeouts and connection-loss fan-out.

These run the channel against a scripted WebSocket server so responses can be
reordered, withheld or dropped on purpose.
"""

import asyncio
import json

import pytest
from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from tests.conftest import wait_until
from vscode_bridge.client import BridgeClient
from vscode_bridge.config import BridgeConfig
from vscode_bridge.errors import (
    BridgeConnectionError,
    BridgeTimeoutError,
    CommandFailedError,
    ConnectionLostError,
    ProtocolError,
)
from vscode_bridge.protocol import CANCEL_METHOD


def reply(request: dict, result: object) -> str:
    return json.dumps({"id": request["id"], "result": result})


# =============================================================================
# Correlation
# =============================================================================


class TestCorrelation:
    """Responses are matched by id, never by arrival order."""

    @pytest.mark.asyncio
    async def test_out_of_order_responses(self, scripted_server, client: BridgeClient) -> None:
        async def reversed_replies(ws: ServerConnection) -> None:
            first = json.loads(await ws.recv())
            second = json.loads(await ws.recv())
            await ws.send(reply(second, {"echo": second["params"]["n"]}))
            await ws.send(reply(first, {"echo": first["params"]["n"]}))
            await ws.wait_closed()

        await scripted_server(reversed_replies)

        first = asyncio.create_task(client.send_command("echo", {"n": 1}))
        await wait_until(lambda: client.channel.pending_count == 1)
        second = asyncio.create_task(client.send_command("echo", {"n": 2}))

        assert await first == {"echo": 1}
        assert await second == {"echo": 2}
        assert client.channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_many_concurrent_requests(self, scripted_server, client: BridgeClient) -> None:
        async def echo_server(ws: ServerConnection) -> None:
            async for raw in ws:
                request = json.loads(raw)
                await ws.send(reply(request, request["params"]))

        await scripted_server(echo_server)

        results = await asyncio.gather(
            *(client.send_command("echo", {"n": i}) for i in range(50))
        )

        assert results == [{"n": i} for i in range(50)]

    @pytest.mark.asyncio
    async def test_malformed_and_unknown_frames_ignored(
        self, scripted_server, client: BridgeClient
    ) -> None:
        async def noisy(ws: ServerConnection) -> None:
            request = json.loads(await ws.recv())
            await ws.send("this is not json")
            await ws.send(json.dumps({"result": "no id"}))
            await ws.send(json.dumps({"id": "someone-else", "result": 1}))
            await ws.send(reply(request, "ok"))
            await ws.wait_closed()

        await scripted_server(noisy)

        assert await client.send_command("getOpenTabs") == "ok"

    @pytest.mark.asyncio
    async def test_request_envelope(self, scripted_server, client: BridgeClient) -> None:
        seen: list[dict] = []

        async def recorder(ws: ServerConnection) -> None:
            async for raw in ws:
                request = json.loads(raw)
                seen.append(request)
                await ws.send(reply(request, None))

        await scripted_server(recorder)

        assert await client.send_command("saveFile") is None
        await client.send_command("openFile", {"filePath": "/tmp/a.py"})

        assert set(seen[0]) == {"id", "method", "params"}
        assert seen[0]["params"] == {}
        assert seen[1]["params"] == {"filePath": "/tmp/a.py"}
        assert seen[0]["id"] != seen[1]["id"]


# =============================================================================
# Error results
# =============================================================================


class TestErrorResults:
    @pytest.mark.asyncio
    async def test_send_returns_error_shape_raw(
        self, scripted_server, client: BridgeClient
    ) -> None:
        async def failing(ws: ServerConnection) -> None:
            async for raw in ws:
                await ws.send(reply(json.loads(raw), {"error": "Unknown command: nope"}))

        await scripted_server(failing)

        assert await client.send_command("nope") == {"error": "Unknown command: nope"}
        response = await client.channel.request("nope")
        assert response.is_error
        assert response.error == "Unknown command: nope"

    @pytest.mark.asyncio
    async def test_call_raises_command_failed(self, scripted_server, client: BridgeClient) -> None:
        async def failing(ws: ServerConnection) -> None:
            async for raw in ws:
                result = {"success": False, "error": "No active editor"}
                await ws.send(reply(json.loads(raw), result))

        await scripted_server(failing)

        with pytest.raises(CommandFailedError) as exc_info:
            await client.call("saveFile")
        assert exc_info.value.message == "No active editor"

    @pytest.mark.asyncio
    async def test_unserializable_params(self, scripted_server, client: BridgeClient) -> None:
        async def silent(ws: ServerConnection) -> None:
            await ws.wait_closed()

        await scripted_server(silent)

        with pytest.raises(ProtocolError, match="not JSON-serializable"):
            await client.send_command("insertText", {"text": object()})
        assert client.channel.pending_count == 0


# =============================================================================
# Timeouts
# =============================================================================


class TestTimeouts:
    """A timed-out request fails alone; its late response is ignored."""

    @pytest.mark.asyncio
    async def test_timeout_then_late_response(self, scripted_server, client: BridgeClient) -> None:
        withheld: list[dict] = []
        release = asyncio.Event()

        async def slow_first(ws: ServerConnection) -> None:
            async for raw in ws:
                request = json.loads(raw)
                if request["method"] == CANCEL_METHOD:
                    continue
                if not withheld:
                    withheld.append(request)
                    await release.wait()
                    await ws.send(reply(request, "late"))
                    continue
                await ws.send(reply(request, "fresh"))

        await scripted_server(slow_first)

        with pytest.raises(BridgeTimeoutError) as exc_info:
            await client.send_command("getDiagnostics", timeout=0.1)
        assert exc_info.value.method == "getDiagnostics"
        assert str(exc_info.value).startswith("Timeout waiting for VSCode response")
        assert not client.channel.is_pending(withheld[0]["id"])

        # The late response must not resolve anything
        release.set()
        await asyncio.sleep(0.05)
        assert client.channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_timeout_does_not_affect_other_requests(
        self, scripted_server, client: BridgeClient
    ) -> None:
        async def selective(ws: ServerConnection) -> None:
            async for raw in ws:
                request = json.loads(raw)
                if request["method"] == "fast":
                    await ws.send(reply(request, "ok"))

        await scripted_server(selective)

        slow = asyncio.create_task(client.send_command("slow", timeout=0.2))
        fast = await client.send_command("fast")

        assert fast == "ok"
        with pytest.raises(BridgeTimeoutError):
            await slow
        assert client.state.value == "open"

    @pytest.mark.asyncio
    async def test_cancel_frame_sent_on_timeout(
        self, scripted_server, client: BridgeClient
    ) -> None:
        cancels: list[dict] = []
        first_id: list[str] = []

        async def silent(ws: ServerConnection) -> None:
            async for raw in ws:
                request = json.loads(raw)
                if request["method"] == CANCEL_METHOD:
                    cancels.append(request)
                else:
                    first_id.append(request["id"])

        await scripted_server(silent)

        with pytest.raises(BridgeTimeoutError):
            await client.send_command("runTask", {"taskName": "build"}, timeout=0.1)

        await wait_until(lambda: len(cancels) == 1)
        assert cancels[0]["params"] == {"id": first_id[0]}

    @pytest.mark.asyncio
    async def test_no_cancel_frame_when_disabled(
        self, scripted_server, config: BridgeConfig
    ) -> None:
        methods: list[str] = []

        async def silent(ws: ServerConnection) -> None:
            async for raw in ws:
                methods.append(json.loads(raw)["method"])

        await scripted_server(silent)

        async with BridgeClient(config.with_overrides(cancel_on_timeout=False)) as client:
            with pytest.raises(BridgeTimeoutError):
                await client.send_command("runTask", timeout=0.1)
            await asyncio.sleep(0.05)

        assert methods == ["runTask"]

    @pytest.mark.asyncio
    async def test_caller_cancellation_clears_entry(
        self, scripted_server, client: BridgeClient
    ) -> None:
        async def silent(ws: ServerConnection) -> None:
            await ws.wait_closed()

        await scripted_server(silent)

        task = asyncio.create_task(client.send_command("slow"))
        await wait_until(lambda: client.channel.pending_count == 1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert client.channel.pending_count == 0


# =============================================================================
# Connection loss
# =============================================================================


class TestConnectionLoss:
    """Every pending request fails once when the socket closes."""

    @pytest.mark.asyncio
    async def test_fan_out_to_all_pending(self, scripted_server, client: BridgeClient) -> None:
        async def drop_after_three(ws: ServerConnection) -> None:
            for _ in range(3):
                await ws.recv()
            await ws.close()

        await scripted_server(drop_after_three)

        tasks = [
            asyncio.create_task(client.send_command("getOpenTabs", timeout=5.0))
            for _ in range(3)
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert len(results) == 3
        assert all(isinstance(r, ConnectionLostError) for r in results)
        assert client.channel.pending_count == 0
        assert client.state.value == "disconnected"

    @pytest.mark.asyncio
    async def test_no_server(self, client: BridgeClient) -> None:
        with pytest.raises(BridgeConnectionError) as exc_info:
            await client.send_command("getWorkspaceInfo")

        assert "Make sure VSCode is running and Bridge is active" in str(exc_info.value)
        assert client.channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_server_closes_while_sending(self, scripted_server, client: BridgeClient) -> None:
        async def hang_up(ws: ServerConnection) -> None:
            try:
                await ws.recv()
            except ConnectionClosed:
                pass

        await scripted_server(hang_up)

        with pytest.raises(ConnectionLostError):
            await client.send_command("getOpenTabs", timeout=5.0)
        assert client.channel.pending_count == 0
