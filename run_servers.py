"""
Main entry point for running the Kanta MCP server.

Transports:
- stdio (default): for local MCP clients such as Claude Desktop
- http: streamable HTTP at http://<host>:<port>/mcp

stdout is reserved for the stdio protocol stream; everything else goes to
stderr through the logger.
"""

import argparse
import os
import signal
import sys

# Add project root to path
project_root = os.path.dirname(os.path.abspath(__file__))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from loguru import logger

from src.kanta.config import ConfigurationError, KantaConfig, configure_logging


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt


def run_mcp_server(transport: str = "stdio", host: str = "0.0.0.0", port: int = 8080):
    """Run the MCP server until interrupted."""
    from src.mcp.mcp_server import run_server, run_http_server

    try:
        config = KantaConfig.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error: {}", e)
        sys.exit(1)

    # SIGTERM takes the same path as Ctrl+C: the transport unwinds and the client is closed
    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)

    try:
        if transport == "stdio":
            logger.info("Starting Kanta MCP server with stdio transport")
            run_server(config)
        else:
            logger.info("Starting Kanta MCP server with HTTP transport at http://{}:{}/mcp", host, port)
            run_http_server(host=host, port=port, config=config)
    except KeyboardInterrupt:
        logger.info("Kanta MCP server stopped")


def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Run the Kanta MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  KANTA_API_KEY     Kanta API key (required)
  KANTA_API_URL     Kanta API base URL (default: https://app.kanta.fr/api/v1)
  KANTA_TIMEOUT_MS  Per-request deadline in milliseconds (default: 30000)
  KANTA_LOG_LEVEL   Log level (default: INFO)

Examples:
  # Run MCP server with stdio (for MCP clients like Claude)
  python run_servers.py mcp

  # Run MCP server with HTTP transport
  python run_servers.py mcp --transport http --port 8080
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    mcp_parser = subparsers.add_parser("mcp", help="Run the MCP server")
    mcp_parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport type (default: stdio)"
    )
    mcp_parser.add_argument("--host", default="0.0.0.0", help="Host for HTTP transport")
    mcp_parser.add_argument("--port", type=int, default=8080, help="Port for HTTP transport")
    mcp_parser.add_argument("--log-level", default=None, help="Log level (overrides KANTA_LOG_LEVEL)")

    args = parser.parse_args()

    if args.command == "mcp":
        configure_logging(args.log_level)
        run_mcp_server(transport=args.transport, host=args.host, port=args.port)
    else:
        parser.print_help(sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
