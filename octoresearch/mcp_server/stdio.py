"""Stdio MCP server implementation using the base class pattern.

This module implements the stdio (stdin/stdout) JSON-RPC protocol for MCP,
inheriting common initialization and lifecycle management from MCPServerBase.

CRITICAL: NO stdout output allowed - breaks JSON-RPC protocol
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import mcp.server.stdio
import mcp.types as types
from loguru import logger as loguru_logger
from mcp.server import Server
from mcp.server.lowlevel import NotificationOptions
from mcp.server.models import InitializationOptions
from pydantic import ValidationError

from octoresearch.backends.base import BaseBackend
from octoresearch.core.config.pipeline_config import PipelineConfig
from octoresearch.version import __version__

from .base import MCPServerBase, debug_enabled
from .common import handle_tool_call
from .tools import available_tools

SERVER_NAME = "octoresearch"
DEFAULT_DEBUG_FILE = "/tmp/octoresearch_mcp_debug.log"

# CRITICAL: Disable stdlib logging to prevent JSON-RPC corruption
logging.disable(logging.CRITICAL)
for logger_name in ["", "mcp", "server"]:
    logging.getLogger(logger_name).setLevel(logging.CRITICAL + 1)


def configure_logging() -> None:
    """Remove every loguru sink; add a file sink when debugging is on."""
    loguru_logger.remove()
    if debug_enabled():
        loguru_logger.add(
            os.getenv("OCTORESEARCH_DEBUG_FILE", DEFAULT_DEBUG_FILE),
            level="DEBUG",
            enqueue=True,
        )


class StdioMCPServer(MCPServerBase):
    """MCP server implementation for stdio protocol."""

    def __init__(
        self,
        config: PipelineConfig,
        backends: Iterable[BaseBackend] | None = None,
    ):
        super().__init__(config, backends=backends)
        self.server: Server = Server(SERVER_NAME)

        # Event to signal initialization completion
        self._initialization_complete = asyncio.Event()

        self._register_tools()

    def _register_tools(self) -> None:
        """Register tool handlers with the stdio server."""

        # The MCP SDK's call_tool decorator expects a SINGLE handler function
        # with signature (tool_name: str, arguments: dict) that handles ALL tools
        @self.server.call_tool()
        async def handle_all_tools(
            tool_name: str, arguments: dict[str, Any]
        ) -> list[types.TextContent]:
            self.debug_log(f"Tool call: {tool_name}")
            return await handle_tool_call(
                tool_name=tool_name,
                arguments=arguments,
                pipeline=self.pipeline,
                initialization_complete=self._initialization_complete,
            )

        self._register_list_tools()

    def _register_list_tools(self) -> None:
        """Register list_tools handler."""

        @self.server.list_tools()
        async def list_tools() -> list[types.Tool]:
            """List available tools."""
            try:
                await asyncio.wait_for(
                    self._initialization_complete.wait(), timeout=5.0
                )
            except asyncio.TimeoutError:
                return []

            return [
                types.Tool(
                    name=tool.name,
                    description=tool.description,
                    inputSchema=tool.parameters,
                )
                for tool in available_tools(self.ensure_pipeline())
            ]

    @asynccontextmanager
    async def server_lifespan(self) -> AsyncIterator[dict]:
        """Manage server lifecycle with proper initialization and cleanup."""
        try:
            await self.initialize()
            self._initialization_complete.set()
            self.debug_log("Server initialization complete")
            yield {"pipeline": self.pipeline}
        finally:
            await self.cleanup()

    async def run(self) -> None:
        """Run the stdio server with proper lifecycle management."""
        init_options = InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=self.server.get_capabilities(
                notification_options=NotificationOptions(),
                experimental_capabilities={},
            ),
        )

        async with self.server_lifespan():
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                self.debug_log("Stdio server started, awaiting requests")
                await self.server.run(
                    read_stream,
                    write_stream,
                    init_options,
                )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="octoresearch MCP stdio server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=None,
        help="Workspace root served by the local backends (default: current directory)",
    )
    return parser


async def main(args: Any = None) -> None:
    """Main entry point for the MCP stdio server.

    Args:
        args: Pre-parsed arguments. If None, will parse from sys.argv.
    """
    configure_logging()

    if args is None:
        args = build_parser().parse_args()

    overrides: dict[str, Any] = {}
    if getattr(args, "path", None) is not None:
        overrides["workspace_root"] = args.path

    try:
        config = PipelineConfig.from_env(**overrides)
    except (ValidationError, ValueError) as e:
        # CRITICAL: Cannot print to stdout in MCP mode
        loguru_logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    server = StdioMCPServer(config)
    try:
        await server.run()
    except Exception as e:
        loguru_logger.exception(f"Stdio server failed: {e}")
        sys.exit(1)


def main_sync() -> None:
    """Synchronous wrapper for CLI entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
