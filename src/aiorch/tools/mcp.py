"""
MCP (remote capability server) clients.

``HttpMCPClient`` speaks JSON-RPC 2.0 over HTTP to configured servers;
``StubMCPClient`` answers every call with a "not configured" failure.
"""

import itertools
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field

from ..utils.logging import get_logger

logger = get_logger(__name__)


class RemoteToolResult(BaseModel):
    """Outcome of a remote tool or workflow invocation."""

    success: bool
    output: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    execution_id: Optional[str] = None


class MCPToolInfo(BaseModel):
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class MCPClient(Protocol):
    async def call_tool(
        self, server_name: str, tool_name: str, input: Dict[str, Any], timeout: float
    ) -> RemoteToolResult: ...

    async def list_tools(self, server_name: str) -> List[MCPToolInfo]: ...

    def is_healthy(self) -> bool: ...


def _not_configured(server_name: str, tool_name: str) -> RemoteToolResult:
    return RemoteToolResult(
        success=False,
        error_message=f"MCP server '{server_name}' not configured. Tool '{tool_name}' unavailable.",
    )


class StubMCPClient:
    """Placeholder client used when no MCP servers are configured."""

    async def call_tool(
        self, server_name: str, tool_name: str, input: Dict[str, Any], timeout: float
    ) -> RemoteToolResult:
        return _not_configured(server_name, tool_name)

    async def list_tools(self, server_name: str) -> List[MCPToolInfo]:
        return []

    def is_healthy(self) -> bool:
        return False


class HttpMCPClient:
    """
    JSON-RPC 2.0 client for MCP servers exposed over HTTP.

    Example:
        client = HttpMCPClient({"search": "http://localhost:8931/mcp"})
        result = await client.call_tool("search", "web_search", {"q": "python"}, 10.0)
    """

    def __init__(
        self,
        servers: Dict[str, str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.servers = dict(servers)
        self._client = httpx.AsyncClient(transport=transport)
        self._ids = itertools.count(1)

    async def _rpc(self, url: str, method: str, params: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = await self._client.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
        return response.json()

    async def call_tool(
        self, server_name: str, tool_name: str, input: Dict[str, Any], timeout: float
    ) -> RemoteToolResult:
        url = self.servers.get(server_name)
        if not url:
            return _not_configured(server_name, tool_name)

        body = await self._rpc(
            url, "tools/call", {"name": tool_name, "arguments": input}, timeout
        )

        if body.get("error"):
            error = body["error"]
            return RemoteToolResult(
                success=False,
                error_message=error.get("message") or f"MCP error {error.get('code')}",
            )

        result = body.get("result") or {}
        content = result.get("content") or []
        structured = result.get("structuredContent")
        output = structured if isinstance(structured, dict) else {"content": content}

        if result.get("isError"):
            texts = [c.get("text", "") for c in content if isinstance(c, dict)]
            return RemoteToolResult(
                success=False,
                output=output,
                error_message=" ".join(t for t in texts if t) or "MCP tool execution failed",
            )

        return RemoteToolResult(success=True, output=output)

    async def list_tools(self, server_name: str) -> List[MCPToolInfo]:
        url = self.servers.get(server_name)
        if not url:
            return []
        body = await self._rpc(url, "tools/list", {}, timeout=10.0)
        tools = (body.get("result") or {}).get("tools") or []
        return [
            MCPToolInfo(
                name=t["name"],
                description=t.get("description", ""),
                input_schema=t.get("inputSchema", {}),
            )
            for t in tools
        ]

    def is_healthy(self) -> bool:
        return bool(self.servers) and not self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpMCPClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_mcp_client(servers: Optional[Dict[str, str]] = None) -> MCPClient:
    """HTTP client when servers are configured, stub otherwise."""
    if servers:
        logger.info("mcp_client_configured", servers=sorted(servers))
        return HttpMCPClient(servers)
    return StubMCPClient()
