"""Run the editor side of the bridge over a headless, filesystem-backed editor.

Useful for trying the MCP server without VSCode, and for end-to-end tests.

Usage:
    vscode-bridge-serve --workspace ./my-project
    vscode-bridge-serve --workspace ./a --workspace ./b --port 4444
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from vscode_bridge.cli import add_bridge_arguments, configure_logging, load_config
from vscode_bridge.config import BridgeConfig
from vscode_bridge.editor import HeadlessEditor
from vscode_bridge.errors import ConfigurationError
from vscode_bridge.server import CommandDispatcher, build_registry

logger = logging.getLogger(__name__)


async def serve(config: BridgeConfig, workspaces: list[Path]) -> None:
    """Serve until cancelled."""
    editor = HeadlessEditor(workspaces)
    dispatcher = CommandDispatcher(build_registry(editor), host=config.host, port=config.port)
    dispatcher.status.on_change(lambda status: logger.info("Status: %s", status.value))

    async with dispatcher:
        logger.info("%s", dispatcher.status.text)
        await asyncio.Event().wait()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Serve VSCode Bridge methods over a headless editor",
    )
    add_bridge_arguments(parser)
    parser.add_argument(
        "--workspace",
        type=Path,
        action="append",
        default=[],
        help="Workspace folder (repeatable)",
    )
    args = parser.parse_args()

    try:
        config = load_config(args)
    except ConfigurationError as e:
        parser.error(str(e))

    configure_logging(config.log_level)

    try:
        asyncio.run(serve(config, args.workspace))
    except KeyboardInterrupt:
        logger.info("Interrupted, bridge stopped")


if __name__ == "__main__":
    main()
