"""Wire envelopes for the editor bridge.

One JSON document per WebSocket frame, in both directions:

    Request:  {"id": "<string>", "method": "<string>", "params": {...}}
    Response: {"id": "<string>", "result": <any>}

There is no separate error channel on the wire. A failed request is answered
with ``result = {"error": "<message>"}``, and editor operations that handle
their own failures answer ``{"success": false, "error": "<message>"}``.
BridgeResponse restores an explicit error tag from either shape so callers
never have to probe ``result`` themselves.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any

from vscode_bridge.errors import ProtocolError

# Reserved method: client asks the dispatcher to cancel an in-flight request
CANCEL_METHOD = "$/cancelRequest"


def new_request_id() -> str:
    """Return a random 128-bit correlation token."""
    return uuid.uuid4().hex


@dataclass
class BridgeRequest:
    """Request frame sent from the MCP side to the editor.

    Attributes:
        method: Registry method name (e.g., "openFile", "getWorkspaceInfo").
        params: Method parameters. Always an object, never omitted.
        id: Correlation token echoed back in the response.
    """

    method: str
    params: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_request_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON transmission."""
        return {
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeRequest:
        """Deserialize from dictionary.

        Args:
            data: Dict containing id, method, and optionally params.

        Returns:
            BridgeRequest instance. Missing or null params become {}.

        Raises:
            KeyError: If id or method is missing.
        """
        params = data.get("params")
        return cls(
            id=data["id"],
            method=data["method"],
            params={} if params is None else params,
        )


@dataclass
class BridgeResponse:
    """Response frame sent from the editor back to the MCP side.

    A response is either a success carrying ``result`` or a failure carrying
    ``error``. On the wire a failure is ``{"id": ..., "result": {"error": ...}}``.

    Attributes:
        id: Request ID this response corresponds to.
        result: Raw result value as it travels on the wire.
        error: Failure message, None for successes.
    """

    id: str
    result: Any = None
    error: str | None = None

    @classmethod
    def success(cls, request_id: str, value: Any) -> BridgeResponse:
        return cls(id=request_id, result=value)

    @classmethod
    def failure(cls, request_id: str, message: str) -> BridgeResponse:
        return cls(id=request_id, error=message)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON transmission."""
        result = self.result
        if self.error is not None and result is None:
            result = {"error": self.error}
        return {"id": self.id, "result": result}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeResponse:
        """Deserialize from dictionary, restoring the error tag.

        Raises:
            KeyError: If id is missing.
        """
        result = data.get("result")
        return cls(id=data["id"], result=result, error=error_from_result(result))


def error_from_result(result: Any) -> str | None:
    """Extract the failure message from an error-shaped result, if any."""
    if not isinstance(result, dict):
        return None
    if result.get("success") is False:
        return str(result.get("error") or "Command failed")
    if "error" in result and result.get("success") is not True:
        return str(result["error"])
    return None


def _load_object(raw: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON frame: {e}", frame=raw) from e
    if not isinstance(data, dict):
        raise ProtocolError("Frame is not a JSON object", frame=raw)
    return data


def _check_id(value: Any, raw: str | bytes) -> None:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ProtocolError(f"Invalid request id: {value!r}", frame=raw)


def decode_request(raw: str | bytes) -> BridgeRequest:
    """Parse a request frame.

    Raises:
        ProtocolError: If the frame is not JSON or not a request envelope.
    """
    data = _load_object(raw)
    try:
        request = BridgeRequest.from_dict(data)
    except KeyError as e:
        raise ProtocolError(f"Request frame missing field {e}", frame=raw) from e
    _check_id(request.id, raw)
    if not isinstance(request.method, str) or not request.method:
        raise ProtocolError("Request method must be a non-empty string", frame=raw)
    if not isinstance(request.params, dict):
        raise ProtocolError("Request params must be an object", frame=raw)
    return request


def decode_response(raw: str | bytes) -> BridgeResponse:
    """Parse a response frame.

    Raises:
        ProtocolError: If the frame is not JSON or has no id.
    """
    data = _load_object(raw)
    try:
        response = BridgeResponse.from_dict(data)
    except KeyError as e:
        raise ProtocolError(f"Response frame missing field {e}", frame=raw) from e
    _check_id(response.id, raw)
    return response
