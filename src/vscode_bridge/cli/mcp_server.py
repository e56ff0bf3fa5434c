"""MCP server that relays assistant tool calls to a running VSCode Bridge.

Usage:
    # Default bridge on ws://localhost:3333
    vscode-bridge-mcp

    # Custom port and timeout
    vscode-bridge-mcp --port 4444 --timeout 30

    # With Claude Code
    claude mcp add vscode -- vscode-bridge-mcp
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from vscode_bridge import mcp_server
from vscode_bridge.cli import add_bridge_arguments, configure_logging, load_config
from vscode_bridge.client import BridgeClient
from vscode_bridge.config import BridgeConfig
from vscode_bridge.errors import ConfigurationError

logger = logging.getLogger(__name__)


async def run(config: BridgeConfig) -> None:
    """Serve MCP on stdio until stdin closes or SIGINT/SIGTERM arrives.

    The bridge connection is closed on the way out either way.
    """
    client = BridgeClient(config)
    mcp_server.set_client(client)

    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    assert main_task is not None
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, main_task.cancel)

    try:
        await mcp_server.mcp.run_async()
    except asyncio.CancelledError:
        logger.info("Shutting down")
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)
        await client.close()
        mcp_server.set_client(None)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="MCP server for controlling VSCode through the VSCode Bridge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vscode-bridge-mcp
  vscode-bridge-mcp --port 4444 --timeout 30
  claude mcp add vscode -- vscode-bridge-mcp
        """,
    )
    add_bridge_arguments(parser)
    parser.add_argument(
        "--timeout", type=float, help="Seconds to wait for each editor response (default: 10)"
    )
    args = parser.parse_args()

    try:
        config = load_config(args)
    except ConfigurationError as e:
        parser.error(str(e))

    configure_logging(config.log_level)
    logger.info("Relaying MCP tools to %s", config.url)
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
