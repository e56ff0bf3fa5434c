"""Method registry: bridge method name -> handler."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any

from vscode_bridge.cancellation import CancellationToken
from vscode_bridge.errors import UnknownMethodError

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], CancellationToken], Awaitable[Any] | Any]


@dataclass(frozen=True)
class Method:
    """A registered bridge method.

    Attributes:
        name: Wire method name (e.g., "openFile").
        handler: Callable taking (params, token). May be sync or async.
        description: Human-readable summary.
    """

    name: str
    handler: Handler
    description: str = ""

    async def invoke(self, params: dict[str, Any], token: CancellationToken) -> Any:
        result = self.handler(params, token)
        if inspect.isawaitable(result):
            result = await result
        return result


class MethodRegistry:
    """Static mapping from method name to exactly one handler.

    Usage:
        registry = MethodRegistry()

        @registry.method("ping")
        async def ping(params, token):
            return {"pong": True}

        method = registry.lookup("ping")
    """

    def __init__(self) -> None:
        self._methods: dict[str, Method] = {}

    def register(self, name: str, handler: Handler, description: str = "") -> Method:
        """Register a handler.

        Raises:
            ValueError: If the name is empty or already registered.
        """
        if not name:
            raise ValueError("Method name must not be empty")
        if name in self._methods:
            raise ValueError(f"Method already registered: {name}")
        method = Method(name=name, handler=handler, description=description)
        self._methods[name] = method
        logger.debug("Registered method: %s", name)
        return method

    def method(self, name: str, description: str = "") -> Callable[[Handler], Handler]:
        """Decorator form of register()."""

        def decorator(handler: Handler) -> Handler:
            self.register(name, handler, description or (inspect.getdoc(handler) or ""))
            return handler

        return decorator

    def lookup(self, name: str) -> Method | None:
        return self._methods.get(name)

    def require(self, name: str) -> Method:
        """Like lookup(), but raise UnknownMethodError when missing."""
        method = self._methods.get(name)
        if method is None:
            raise UnknownMethodError(name)
        return method

    def names(self) -> list[str]:
        return sorted(self._methods)

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __len__(self) -> int:
        return len(self._methods)

    def __iter__(self) -> Iterator[Method]:
        return iter(self._methods.values())
