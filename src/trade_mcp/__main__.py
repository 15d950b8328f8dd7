"""Entry points for the MCP and HTTP servers."""

import asyncio
import sys

import uvicorn

from .config import load_config
from .http_api import create_app
from .logger import init_logging
from .server import TradeMCPServer
from .trading_service import create_service


def main():
    """Main entry point for the MCP server."""
    try:
        asyncio.run(async_main())
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


async def async_main():
    """Async main function."""
    config = load_config()
    init_logging(config.log_level)

    server = TradeMCPServer(config)

    await server.run()


def http_main():
    """Serve the trade routes over HTTP with uvicorn."""
    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    init_logging(config.log_level)

    uvicorn.run(
        create_app(create_service(config)),
        host=config.http_host,
        port=config.http_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
