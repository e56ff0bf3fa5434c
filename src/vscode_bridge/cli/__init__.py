"""Command-line entry points.

Shared helpers for building a BridgeConfig from flags, environment and an
optional YAML file. Flags win; below them the YAML file is used when given,
otherwise VSCODE_BRIDGE_* environment variables.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from vscode_bridge.config import BridgeConfig


def add_bridge_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", help="Bridge host (default: localhost)")
    parser.add_argument("--port", type=int, help="Bridge port (default: 3333)")
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: INFO)",
    )


def load_config(args: argparse.Namespace) -> BridgeConfig:
    config = BridgeConfig.from_yaml(args.config) if args.config else BridgeConfig.from_env()
    return config.with_overrides(
        host=args.host,
        port=args.port,
        request_timeout=getattr(args, "timeout", None),
        log_level=args.log_level,
    )


def configure_logging(level: str) -> None:
    # stdout carries MCP traffic
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
