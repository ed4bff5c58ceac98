#!/usr/bin/env python3
"""
MCP Server for Synapse Memory System
Copyright 2025 Jurden Bruce

"""

import sys
import os
import asyncio
import logging
import traceback

# Redirect stdout before imports
_original_stdout_fd = os.dup(1)
os.dup2(2, 1)

logging.basicConfig(
    level=logging.INFO,
    stream=sys.stderr,
    format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
)

logger = logging.getLogger("synapse-memory")

for logger_name in ["sentence_transformers", "urllib3", "httpx"]:
    logging.getLogger(logger_name).setLevel(logging.CRITICAL)

from mcp.server.models import InitializationOptions
from mcp.server import NotificationOptions, Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from . import __version__
from .config import MemoryConfig
from .mcp_tools import get_tool_definitions, handle_tool_call
from .memory_store import MemoryGateway

gateway = None

app = Server("synapse-memory")


@app.list_tools()
async def handle_list_tools() -> list[Tool]:
    return get_tool_definitions()


@app.call_tool()
async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
    if gateway is None:
        raise RuntimeError("Memory gateway not initialized")
    return await handle_tool_call(name, arguments, gateway)


async def main():
    """Main entry point"""
    global gateway

    try:
        config = MemoryConfig.from_env()
        logger.info(f"Initializing MemoryGateway in {config.data_dir}")
        gateway = MemoryGateway(config)

        # Restore stdout for MCP communication
        os.dup2(_original_stdout_fd, 1)
        sys.stdout = os.fdopen(_original_stdout_fd, "w")

        logger.info("Starting MCP server...")
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name="synapse-memory",
                    server_version=__version__,
                    capabilities=app.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        logger.error(traceback.format_exc())
        sys.exit(1)
    finally:
        if gateway:
            await gateway.shutdown()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
