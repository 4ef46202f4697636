"""
Tool-call client with authentication retry.

Every call goes through a transport and comes back as a ToolResult variant.
When the server reports an invalid or expired access token the client reads
the token file, pushes the token to the server through the token-update tool
and repeats the original call. The retry is bounded so an invalid token
cannot cause an endless loop.
"""

from typing import Any, Dict, Iterable, Optional

from .credentials import TokenStore
from .protocol import AuthRequired, ToolResult, build_tool_call, unwrap_response
from .transport.base import Transport
from .utils.config import CredentialsConfig
from .utils.logging import get_logger

logger = get_logger("dropbox-mcp-harness.client")


class ToolClient:
    """Calls MCP tools through a transport."""

    def __init__(
        self,
        transport: Transport,
        token_store: TokenStore,
        token_tool: str = "update_access_token",
        auth_markers: Iterable[str] = ("invalid_access_token", "expired_access_token"),
        max_auth_retries: int = 1,
    ):
        self.transport = transport
        self.token_store = token_store
        self.token_tool = token_tool
        self.auth_markers = tuple(auth_markers)
        self.max_auth_retries = max_auth_retries
        self.auth_retries = 0

    @classmethod
    def from_config(cls, transport: Transport, credentials: CredentialsConfig,
                    token_store: Optional[TokenStore] = None) -> "ToolClient":
        return cls(
            transport,
            token_store or TokenStore(credentials.token_file),
            token_tool=credentials.token_tool,
            auth_markers=credentials.auth_markers,
            max_auth_retries=credentials.max_auth_retries,
        )

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None,
                        retry_depth: int = 0) -> ToolResult:
        """
        Call a tool.

        Args:
            name: Tool name
            arguments: Tool arguments
            retry_depth: Number of auth retries already spent on this call

        Returns:
            StructuredResult or PlainText; AuthRequired only when the call
            cannot be retried (token tool itself, or retries exhausted)

        Raises:
            ToolError: The response carried a JSON-RPC error
            TransportError: The server process failed or answered garbage
            CredentialError: The token file could not be read for a retry
        """
        arguments = arguments or {}
        request = build_tool_call(name, arguments)
        logger.info("tool_call_started", tool=name, id=request["id"], retry_depth=retry_depth)

        response = await self.transport.exchange(request)
        result = unwrap_response(response, name, self.auth_markers)

        if isinstance(result, AuthRequired):
            if name != self.token_tool and retry_depth < self.max_auth_retries:
                logger.warning("auth_retry", tool=name, retry_depth=retry_depth)
                self.auth_retries += 1
                await self.refresh_token()
                return await self.call_tool(name, arguments, retry_depth + 1)

            logger.error("auth_failed", tool=name, retry_depth=retry_depth)
            return result

        logger.info("tool_call_finished", tool=name, result=type(result).__name__)
        return result

    async def refresh_token(self) -> ToolResult:
        """Read the token file and hand the token to the server."""
        token = await self.token_store.read()
        return await self.update_token(token)

    async def update_token(self, token: str) -> ToolResult:
        return await self.call_tool(self.token_tool, {"token": token})
