"""
JSON-RPC request building and MCP response unwrapping.

The server answers a tools/call request with either an ``error`` member or a
``result`` holding a list of content items. Only the first content item is
consulted. Its text is classified once, here, into one of three result
variants so callers never re-parse tool output themselves.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from mcp import types
from pydantic import ValidationError

from .utils.errors import ToolError, ResponseParseError


@dataclass(frozen=True)
class StructuredResult:
    """Tool output that parsed as JSON (or a result without content)."""
    value: Any

    @property
    def payload(self) -> Any:
        return self.value


@dataclass(frozen=True)
class PlainText:
    """Tool output that is not JSON."""
    text: str

    @property
    def payload(self) -> str:
        return self.text


@dataclass(frozen=True)
class AuthRequired:
    """Tool output reporting an invalid or expired access token."""
    text: str

    @property
    def payload(self) -> str:
        return self.text


ToolResult = Union[StructuredResult, PlainText, AuthRequired]


def new_request_id() -> str:
    """Request ids only need to be unique per process, so a timestamp will do."""
    return str(int(time.time() * 1000))


def build_tool_call(name: str, arguments: Optional[Dict[str, Any]] = None,
                    request_id: Optional[str] = None) -> Dict[str, Any]:
    """Build a tools/call JSON-RPC request."""
    request = types.JSONRPCRequest(
        jsonrpc="2.0",
        id=request_id or new_request_id(),
        method="tools/call",
        params={"name": name, "arguments": arguments or {}},
    )
    return request.model_dump(by_alias=True, exclude_none=True)


def contains_auth_marker(text: str, markers: Iterable[str]) -> bool:
    return any(marker and marker in text for marker in markers)


def classify_text(text: str, auth_markers: Iterable[str] = ()) -> ToolResult:
    """Turn the text of a content item into a result variant."""
    if contains_auth_marker(text, auth_markers):
        return AuthRequired(text)

    try:
        return StructuredResult(json.loads(text))
    except json.JSONDecodeError:
        return PlainText(text)


def unwrap_response(response: Dict[str, Any], tool_name: str,
                    auth_markers: Iterable[str] = ()) -> ToolResult:
    """
    Unwrap a tools/call response.

    Args:
        response: Parsed JSON-RPC response
        tool_name: Tool that was called, for error messages
        auth_markers: Substrings that mark an authentication failure

    Returns:
        The result variant for the first content item

    Raises:
        ToolError: If the response carries an error member
        ResponseParseError: If the response has neither error nor result, or
            its content is malformed
    """
    if "error" in response:
        raise ToolError(tool_name, response["error"])

    if "result" not in response:
        raise ResponseParseError(json.dumps(response), reason="response has neither result nor error")

    result = response["result"]
    content = result.get("content") if isinstance(result, dict) else None
    if not content:
        return StructuredResult(result)

    if not isinstance(content, list):
        raise ResponseParseError(json.dumps(response), reason="content is not a list")

    item = content[0]
    if isinstance(item, dict) and item.get("type") == "text":
        try:
            text_item = types.TextContent.model_validate(item)
        except ValidationError as e:
            raise ResponseParseError(
                json.dumps(response), reason=f"malformed text content: {e.errors()[0]['msg']}"
            ) from e
        return classify_text(text_item.text, auth_markers)

    # Only text content is produced by the Dropbox server
    return StructuredResult(item)


__all__ = [
    "StructuredResult",
    "PlainText",
    "AuthRequired",
    "ToolResult",
    "new_request_id",
    "build_tool_call",
    "contains_auth_marker",
    "classify_text",
    "unwrap_response",
]
