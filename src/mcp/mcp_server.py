"""
MCP server exposing the Kanta API, built on the official MCP Python SDK.

The low-level ``mcp.server.Server`` is used so that every tool call goes
through the ``Dispatcher``. It owns routing, argument validation and error
normalization. The server declares the 'tools' and 'resources' capabilities:

- tools/list, tools/call: the resource tool groups (customers, users, persons,
  firms, structure)
- resources/list, resources/templates/list, resources/read: the aggregate
  views of ``ResourceViews``

Tool results are returned as a single text content holding pretty-printed
JSON. Failures come back as ``isError`` results whose text starts with the
machine-readable code, e.g. ``[NOT_FOUND] Not found: ...``.

Transports:
- stdio (for Claude Desktop and other local MCP clients): ``run_server()``
- streamable HTTP at ``/mcp`` (for networked clients): ``run_http_server()``
"""

import json
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from pydantic import AnyUrl
from starlette.applications import Starlette
from starlette.routing import Mount

from src.kanta.client import KantaClient
from src.kanta.config import KantaConfig

from .dispatcher import Dispatcher
from .resources import ResourceViews


SERVER_NAME = "kanta-mcp-server"
SERVER_VERSION = "1.0.0"

INSTRUCTIONS = """
Kanta MCP Server providing tools for:
- Customer files: list, search, create, update, assign, risk summaries
- Users of the account: list, create, delete
- Persons linked to customers (read-only)
- Firms and account structure
"""


def to_json_text(result: Any) -> str:
    return json.dumps(result, indent=2, ensure_ascii=False)


class KantaMCPServer:
    """
    The Kanta MCP server: one client, one dispatcher, one MCP ``Server``.

    Built once from an immutable ``KantaConfig``.
    """

    def __init__(self, config: KantaConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the server.

        Args:
            config: Kanta credential / base URL / timeout
            transport: Optional httpx transport for the Kanta client (tests)
        """
        self.config = config
        self.client = KantaClient(config, transport=transport)
        self.dispatcher = Dispatcher(self.client)
        self.views = ResourceViews(self.client, ensure_available=self.dispatcher.ensure_available)
        self.server = Server(SERVER_NAME, version=SERVER_VERSION, instructions=INSTRUCTIONS)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        server = self.server

        @server.list_tools()
        async def list_tools() -> List[types.Tool]:
            return [tool.to_mcp_tool() for tool in self.dispatcher.list_tools()]

        # Arguments are validated by the dispatcher so failures map to ParameterError
        @server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
            result = await self.dispatcher.call(name, arguments or {})
            return [types.TextContent(type="text", text=to_json_text(result))]

        @server.list_resources()
        async def list_resources() -> List[types.Resource]:
            return self.views.list_resources()

        @server.list_resource_templates()
        async def list_resource_templates() -> List[types.ResourceTemplate]:
            return self.views.list_resource_templates()

        @server.read_resource()
        async def read_resource(uri: AnyUrl) -> List[ReadResourceContents]:
            content = await self.views.read(str(uri))
            return [ReadResourceContents(content=to_json_text(content), mime_type="application/json")]

    async def aclose(self) -> None:
        """Close the shutdown gate, then release the HTTP pool."""
        self.dispatcher.shutdown()
        await self.client.aclose()

    async def run_stdio(self) -> None:
        """Serve over stdin/stdout until the client disconnects."""
        try:
            async with stdio_server() as (read_stream, write_stream):
                logger.info("Kanta MCP server started and connected via stdio")
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.aclose()

    def streamable_http_app(self) -> Starlette:
        """ASGI app serving the streamable HTTP transport at ``/mcp``."""
        session_manager = StreamableHTTPSessionManager(app=self.server)

        async def handle_mcp(scope, receive, send) -> None:
            await session_manager.handle_request(scope, receive, send)

        @asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            async with session_manager.run():
                logger.info("Kanta MCP server started with streamable HTTP transport")
                try:
                    yield
                finally:
                    await self.aclose()

        return Starlette(routes=[Mount("/mcp", app=handle_mcp)], lifespan=lifespan)


def create_server(config: Optional[KantaConfig] = None) -> KantaMCPServer:
    """Build the server from the given config, or from the environment."""
    return KantaMCPServer(config or KantaConfig.from_env())


def run_server(config: Optional[KantaConfig] = None):
    """Run the MCP server with stdio transport (default for MCP)."""
    import asyncio
    app = create_server(config)
    asyncio.run(app.run_stdio())


def run_http_server(host: str = "0.0.0.0", port: int = 8080, config: Optional[KantaConfig] = None):
    """Run the MCP server with streamable HTTP transport."""
    import uvicorn
    app = create_server(config)
    uvicorn.run(app.streamable_http_app(), host=host, port=port)


if __name__ == "__main__":
    # Run with stdio transport by default
    run_server()
