"""Test fixtures for vscode-bridge."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from websockets.asyncio.server import Server, ServerConnection, serve

from vscode_bridge.client import BridgeClient
from vscode_bridge.config import BridgeConfig
from vscode_bridge.editor import DiagnosticInfo, ExtensionInfo, HeadlessEditor, Position
from vscode_bridge.server import CommandDispatcher, build_registry

# "localhost" may resolve to both IPv4 and IPv6; tests stick to one family
HOST = "127.0.0.1"

ScriptedHandler = Callable[[ServerConnection], Awaitable[None]]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true, failing the test on timeout."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            pytest.fail("condition not reached in time")
        await asyncio.sleep(0.01)


# =============================================================================
# Editor Fixtures
# =============================================================================


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace folder with a couple of source files."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "main.py").write_text("def main():\n    print('hello')\n")
    (root / "notes.md").write_text("# Notes\nfoo bar foo\n")
    return root


@pytest.fixture
def editor(workspace: Path) -> HeadlessEditor:
    editor = HeadlessEditor(
        [workspace],
        extensions=[
            ExtensionInfo(
                id="ms-python.python",
                display_name="Python",
                version="2024.1.0",
                is_active=True,
                description="Python language support",
            ),
        ],
        tasks=["build", "test"],
    )
    editor.set_diagnostics(
        workspace / "main.py",
        [
            DiagnosticInfo(
                message="Undefined name 'x'",
                severity="Error",
                start=Position(1, 4),
                end=Position(1, 5),
                source="pyflakes",
            ),
        ],
    )
    return editor


# =============================================================================
# Bridge Fixtures
# =============================================================================


@pytest.fixture
def config(unused_tcp_port: int) -> BridgeConfig:
    return BridgeConfig(
        host=HOST,
        port=unused_tcp_port,
        request_timeout=2.0,
        connect_timeout=2.0,
    )


@pytest_asyncio.fixture
async def dispatcher(editor: HeadlessEditor, config: BridgeConfig):
    """Running dispatcher over the HeadlessEditor."""
    dispatcher = CommandDispatcher(build_registry(editor), host=config.host, port=config.port)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest_asyncio.fixture
async def client(config: BridgeConfig):
    client = BridgeClient(config)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def scripted_server(config: BridgeConfig):
    """Start a raw WebSocket server with a test-supplied handler.

    Used to withhold, reorder or drop responses in ways a real dispatcher
    never would. Returns the server; its URL matches ``config.url``.
    """
    servers: list[Server] = []

    async def start(handler: ScriptedHandler) -> Server:
        server = await serve(handler, config.host, config.port)
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.close()
        await server.wait_closed()
