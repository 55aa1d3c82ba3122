"""
MCP Client for the Kanta MCP server (or any standard MCP server).

This client uses the official MCP Python SDK over the streamable HTTP
transport. Agents and integration tests use it to reach the Kanta tools
through the protocol, never by importing the server's Python functions.

Protocol Compliance:
- Uses official MCP SDK for session management
- Supports both sync and async operations
- Handles tool and resource discovery and invocation
"""

import asyncio
import json
import os
import re
from typing import Any, Dict, List, Optional

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError
from pydantic import AnyUrl


# Default MCP server URL - configurable via environment variable
DEFAULT_MCP_URL = os.environ.get("MCP_SERVER_URL", "http://localhost:8080/mcp")

_ERROR_CODE_RE = re.compile(r"^\[(?P<code>[A-Z_]+)\]\s*")


class MCPClient:
    """
    MCP Client that communicates with an MCP server using the official MCP SDK.
    """

    def __init__(self, base_url: str = DEFAULT_MCP_URL):
        """
        Initialize the MCP client.

        Args:
            base_url: URL of the MCP server endpoint (default: http://localhost:8080/mcp)
        """
        self.url = base_url.rstrip("/")
        if not self.url.endswith("/mcp"):
            self.url = f"{self.url}/mcp"
        self._tools_cache: Optional[List[Dict[str, Any]]] = None

    @property
    def base_url(self) -> str:
        """Return base URL without the /mcp suffix."""
        return self.url.rsplit("/mcp", 1)[0]

    async def _run_session(self, callback):
        """
        Run a callback within an MCP session.

        Args:
            callback: Async function that takes a ClientSession

        Returns:
            Result from the callback
        """
        async with streamablehttp_client(self.url) as (read_stream, write_stream, _):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                return await callback(session)

    def _run_sync(self, coro):
        """Run an async coroutine synchronously."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No running loop, we can use asyncio.run
            return asyncio.run(coro)
        # Already in an async context: run in a separate thread
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result()

    async def list_tools_async(self) -> List[Dict[str, Any]]:
        """List available tools from the MCP server (async)."""
        async def get_tools(session: ClientSession):
            result = await session.list_tools()
            return [
                {
                    "name": tool.name,
                    "description": tool.description or "",
                    "inputSchema": tool.inputSchema,
                }
                for tool in result.tools
            ]
        return await self._run_session(get_tools)

    async def call_tool_async(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Call a tool on the MCP server (async)."""
        async def call(session: ClientSession):
            result = await session.call_tool(name, arguments or {})
            text = _first_text(result.content)

            if result.isError:
                raise MCPToolError(name, text or "Tool execution failed")

            if text is None:
                return result
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                return text

        return await self._run_session(call)

    async def list_resources_async(self) -> List[Dict[str, Any]]:
        """List static resources and resource templates (async)."""
        async def get_resources(session: ClientSession):
            resources = await session.list_resources()
            templates = await session.list_resource_templates()
            return [
                {"uri": str(r.uri), "name": r.name, "description": r.description or ""}
                for r in resources.resources
            ] + [
                {"uriTemplate": t.uriTemplate, "name": t.name, "description": t.description or ""}
                for t in templates.resourceTemplates
            ]
        return await self._run_session(get_resources)

    async def read_resource_async(self, uri: str) -> Any:
        """Read a resource and decode its JSON content (async)."""
        async def read(session: ClientSession):
            try:
                result = await session.read_resource(AnyUrl(uri))
            except McpError as e:
                raise MCPError(e.error.model_dump()) from e
            text = _first_text(result.contents)
            if text is None:
                return result
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                return text
        return await self._run_session(read)

    def list_tools(self, use_cache: bool = True) -> List[Dict[str, Any]]:
        """
        List available tools from the MCP server.

        Args:
            use_cache: Whether to use cached tools list

        Returns:
            List of tool definitions with name, description, and input schema
        """
        if use_cache and self._tools_cache is not None:
            return self._tools_cache

        tools = self._run_sync(self.list_tools_async())
        self._tools_cache = tools
        return tools

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a tool on the MCP server via tools/call method.

        Args:
            name: Name of the tool to call
            arguments: Arguments to pass to the tool

        Returns:
            The tool's result (parsed from content array)

        Raises:
            MCPToolError: If the tool execution failed (isError: true)
        """
        return self._run_sync(self.call_tool_async(name, arguments))

    def list_resources(self) -> List[Dict[str, Any]]:
        return self._run_sync(self.list_resources_async())

    def read_resource(self, uri: str) -> Any:
        """
        Read a resource via resources/read.

        Raises:
            MCPError: If the server answered with a JSON-RPC error
        """
        return self._run_sync(self.read_resource_async(uri))

    # Convenience methods for Kanta tools

    def get_customers(self, per_page: Optional[int] = None, page: Optional[int] = None) -> Dict[str, Any]:
        """List customers."""
        return self.call_tool("get_customers", _without_none(per_page=per_page, page=page))

    def get_customer(self, customer_id: str) -> Dict[str, Any]:
        """Get customer information by ID."""
        return self.call_tool("get_customer", {"id": customer_id})

    def search_customers(
        self,
        company_number: Optional[str] = None,
        company_name: Optional[str] = None,
        code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Search customers by company number, company name or code."""
        return self.call_tool(
            "search_customers",
            _without_none(company_number=company_number, company_name=company_name, code=code),
        )

    def get_customer_risk_summary(self, customer_id: str) -> Dict[str, Any]:
        """Get the risk breakdown of a customer."""
        return self.call_tool("get_customer_risk_summary", {"id": customer_id})

    def get_users(self, per_page: Optional[int] = None, page: Optional[int] = None) -> Dict[str, Any]:
        """List users."""
        return self.call_tool("get_users", _without_none(per_page=per_page, page=page))

    def get_structure(self) -> Dict[str, Any]:
        """Get account structure information."""
        return self.call_tool("get_structure", {})


def _first_text(content: Any) -> Optional[str]:
    if content:
        first = content[0]
        if hasattr(first, "text"):
            return first.text
    return None


def _without_none(**kwargs: Any) -> Dict[str, Any]:
    return {key: value for key, value in kwargs.items() if value is not None}


class MCPError(Exception):
    """
    Exception raised when MCP server returns a protocol-level error.
    These are JSON-RPC 2.0 errors, e.g. an unknown resource or a malformed id.
    """

    def __init__(self, error: Dict[str, Any]):
        if isinstance(error, dict):
            self.code = error.get("code", -1)
            self.message = error.get("message", "Unknown error")
            self.data = error.get("data")
        else:
            self.code = -1
            self.message = str(error)
            self.data = None
        super().__init__(f"MCP Error {self.code}: {self.message}")


class MCPToolError(Exception):
    """
    Exception raised when a tool execution fails (isError: true in response).

    ``code`` is the machine-readable error code sent by the Kanta server
    (e.g. "NOT_FOUND"), or None if the message carries none.
    """

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        self.message = message
        match = _ERROR_CODE_RE.match(message)
        self.code = match.group("code") if match else None
        super().__init__(f"Tool '{tool_name}' failed: {message}")


# Singleton client instance
_client: Optional[MCPClient] = None


def get_mcp_client(base_url: str = DEFAULT_MCP_URL) -> MCPClient:
    """
    Get or create a singleton MCP client.

    Args:
        base_url: Base URL of the MCP server

    Returns:
        MCPClient instance
    """
    global _client
    if _client is None or _client.url != base_url:
        _client = MCPClient(base_url)
    return _client
