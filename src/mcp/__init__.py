"""
MCP (Model Context Protocol) Module.

Exposes the Kanta API as MCP tools and resources using the official `mcp` SDK.

## Architecture

    MCP client -> KantaMCPServer -> Dispatcher -> tool group handler
               -> KantaClient -> Kanta REST API

- ``Dispatcher``: exact-name tool registry, argument validation, error
  normalization, shutdown gate
- ``ResourceViews``: read-only aggregate views (organization, customer
  roster, risk summaries)
- ``errors``: the protocol error taxonomy (``ToolError`` and subclasses)

### MCP Server
Run with stdio (Claude Desktop and other local MCP clients):
    python run_servers.py mcp

Run with streamable HTTP:
    python run_servers.py mcp --transport http --port 8080

### MCP Client
    from src.mcp import get_mcp_client

    client = get_mcp_client()
    result = client.call_tool("get_customer", {"id": "..."})
"""

from .dispatcher import Dispatcher, Route
from .errors import (
    ErrorCode,
    ToolError,
    ParameterError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    RequestTimeoutError,
    UpstreamValidationError,
    ExecutionError,
    UnavailableError,
    UnknownOperationError,
    normalize_error,
)
from .resources import ResourceViews, RiskSummaryReport, ItemOutcome, settle_all
from .mcp_server import (
    KantaMCPServer,
    create_server,
    run_server,
    run_http_server,
    SERVER_NAME,
)

# MCP Client (protocol-compliant)
from .mcp_client import MCPClient, MCPError, MCPToolError, get_mcp_client, DEFAULT_MCP_URL

__all__ = [
    # Dispatch
    "Dispatcher",
    "Route",
    # Errors
    "ErrorCode",
    "ToolError",
    "ParameterError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "RequestTimeoutError",
    "UpstreamValidationError",
    "ExecutionError",
    "UnavailableError",
    "UnknownOperationError",
    "normalize_error",
    # Resources
    "ResourceViews",
    "RiskSummaryReport",
    "ItemOutcome",
    "settle_all",
    # MCP Server
    "KantaMCPServer",
    "create_server",
    "run_server",
    "run_http_server",
    "SERVER_NAME",
    # MCP Client
    "MCPClient",
    "MCPError",
    "MCPToolError",
    "get_mcp_client",
    "DEFAULT_MCP_URL",
]
