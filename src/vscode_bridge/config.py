"""Configuration for both halves of the bridge."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from vscode_bridge.errors import ConfigurationError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3333
DEFAULT_REQUEST_TIMEOUT = 10.0

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class BridgeConfig:
    """Bridge connection settings.

    Loaded from defaults, environment variables and/or a YAML file. The same
    config drives the MCP-side client and the editor-side dispatcher.
    """

    # Socket
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # Timeouts (seconds)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    connect_timeout: float = 5.0

    # Ask the dispatcher to cancel handlers whose requests timed out
    cancel_on_timeout: bool = True

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.validate()

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    def validate(self) -> None:
        """Raise ConfigurationError for out-of-range values."""
        if not self.host:
            raise ConfigurationError("host must not be empty")
        if not 0 <= self.port <= 65535:
            raise ConfigurationError(f"port out of range: {self.port}")
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"request_timeout must be positive: {self.request_timeout}"
            )
        if self.connect_timeout <= 0:
            raise ConfigurationError(
                f"connect_timeout must be positive: {self.connect_timeout}"
            )
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")

    def with_overrides(self, **overrides: Any) -> BridgeConfig:
        """Return a copy with non-None overrides applied (CLI flag merge)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_yaml(cls, path: Path) -> BridgeConfig:
        """Load configuration from YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {path} must be a mapping")
        return cls._from_dict(data)

    @classmethod
    def from_env(cls) -> BridgeConfig:
        """Load configuration from VSCODE_BRIDGE_* environment variables."""
        data: dict[str, Any] = {}

        if host := os.environ.get("VSCODE_BRIDGE_HOST"):
            data["host"] = host
        if port := os.environ.get("VSCODE_BRIDGE_PORT"):
            data["port"] = port
        if timeout := os.environ.get("VSCODE_BRIDGE_TIMEOUT"):
            data["request_timeout"] = timeout
        if connect_timeout := os.environ.get("VSCODE_BRIDGE_CONNECT_TIMEOUT"):
            data["connect_timeout"] = connect_timeout
        if cancel := os.environ.get("VSCODE_BRIDGE_CANCEL_ON_TIMEOUT"):
            data["cancel_on_timeout"] = cancel
        if level := os.environ.get("VSCODE_BRIDGE_LOG_LEVEL"):
            data["log_level"] = level

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> BridgeConfig:
        """Create config from dictionary, coercing string values."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")

        try:
            kwargs: dict[str, Any] = {}
            if "host" in data:
                kwargs["host"] = str(data["host"])
            if "port" in data:
                kwargs["port"] = int(data["port"])
            if "request_timeout" in data:
                kwargs["request_timeout"] = float(data["request_timeout"])
            if "connect_timeout" in data:
                kwargs["connect_timeout"] = float(data["connect_timeout"])
            if "cancel_on_timeout" in data:
                kwargs["cancel_on_timeout"] = _parse_bool(data["cancel_on_timeout"])
            if "log_level" in data:
                kwargs["log_level"] = str(data["log_level"]).upper()
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid config value: {e}") from e

        return cls(**kwargs)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")
