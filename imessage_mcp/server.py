#!/usr/bin/env python3
"""
iMessage MCP Server - send and read iMessages from an MCP client.

Tools:
- send-message: Send an iMessage to a phone number or e-mail handle
- read-messages: Read recent messages, optionally by chat, sender or unread state
- get-conversations: List recent conversations with unread counts
- get-conversation-details: Participants, last message and size of one chat

Usage:
    imessage-mcp                       # stdio transport
    imessage-mcp --transport http      # HTTP JSON-RPC on 127.0.0.1:8765
    python -m imessage_mcp
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from contextlib import suppress
from typing import Optional

from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError

from imessage_mcp.config import configure_logging, load_config
from imessage_mcp.dispatcher import ToolDispatcher
from imessage_mcp.gateway import MessagingGateway
from imessage_mcp.tools import TOOL_DEFINITIONS
from imessage_mcp.utils.errors import SDKInitError, UnknownOperation

logger = logging.getLogger(__name__)


def create_server(dispatcher: ToolDispatcher, config: dict) -> Server:
    """
    Build an MCP server whose tools are served by ``dispatcher``.

    ``tools/call`` is registered as a raw request handler rather than
    through ``Server.call_tool()`` so that argument problems are reported
    by our validator as error-flagged results, and unknown tools become a
    method-not-found protocol error.
    """
    server = Server(config["server_name"], version=config["version"])

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """List the four messaging tools."""
        return TOOL_DEFINITIONS

    async def handle_call_tool(request: types.CallToolRequest) -> types.ServerResult:
        name = request.params.name
        try:
            result = await dispatcher.dispatch(name, request.params.arguments)
        except UnknownOperation as e:
            raise McpError(types.ErrorData(code=types.METHOD_NOT_FOUND, message=str(e))) from e
        return types.ServerResult(result.to_call_tool_result())

    server.request_handlers[types.CallToolRequest] = handle_call_tool
    return server


class ServerLifecycle:
    """
    Owns the gateway for one server process: init, run, shutdown.

    ``shutdown`` releases the gateway's SDK handle and runs at most once,
    however many transports or signals request it.
    """

    def __init__(self, config: dict, gateway: Optional[MessagingGateway] = None):
        self.config = config
        self.gateway = gateway
        self.dispatcher: Optional[ToolDispatcher] = None
        self._shutdown_started = False
        self._exit_task: Optional[asyncio.Task] = None

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_started

    def init(self) -> ToolDispatcher:
        """
        Initialize the gateway and dispatcher. Idempotent.

        Raises:
            SDKInitError: If the messaging SDK cannot be initialized
        """
        if self.dispatcher is None:
            if self.gateway is None:
                self.gateway = MessagingGateway.from_config(self.config)
            self.dispatcher = ToolDispatcher(self.gateway)
            logger.info(f"MCP server initialized: {self.config['server_name']}")
        return self.dispatcher

    async def shutdown(self) -> None:
        """Release the messaging SDK. Later calls are no-ops."""
        if self._shutdown_started:
            return
        self._shutdown_started = True
        logger.info("Shutting down iMessage MCP server...")
        if self.gateway is not None:
            try:
                await self.gateway.close()
            except Exception as e:
                logger.error(f"Error during cleanup: {e}", exc_info=True)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # add_signal_handler is unavailable on Windows event loops
            with suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}")
        if self._exit_task is None:
            self._exit_task = asyncio.ensure_future(self.terminate())

    async def terminate(self, exit_code: int = 0) -> None:
        """
        Shut down and end the process.

        The stdin reader blocks in a worker thread until the client closes
        the pipe, so the process cannot wind down through the event loop.
        After releasing the gateway, pending protocol output and log records
        are flushed and the process exits directly.
        """
        await self.shutdown()
        for stream in (sys.stdout, sys.stderr):
            # The client may already have closed its end of the pipe
            with suppress(OSError, ValueError):
                stream.flush()
        logging.shutdown()
        os._exit(exit_code)

    async def run_stdio(self) -> None:
        """
        Serve MCP over stdin/stdout until the client disconnects. SIGINT and
        SIGTERM release the gateway and end the process.
        """
        dispatcher = self.init()
        server = create_server(dispatcher, self.config)
        self._install_signal_handlers()

        logger.info("Starting iMessage MCP Server on stdio...")
        logger.info(f"Server name: {self.config['server_name']}")
        logger.info(f"Version: {self.config['version']}")

        async with stdio_server() as (read_stream, write_stream):
            try:
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options()
                )
            finally:
                await self.shutdown()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="imessage-mcp", description="iMessage MCP server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default=os.getenv("IMESSAGE_MCP_TRANSPORT", "stdio"),
        help="Transport to serve on (default: stdio)",
    )
    parser.add_argument("--host", help="HTTP bind address (overrides config)")
    parser.add_argument("--port", type=int, help="HTTP port (overrides config)")
    parser.add_argument("--config", help="Path to a JSON configuration file")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Command-line entry point."""
    args = build_arg_parser().parse_args(argv)

    config = load_config(args.config)
    configure_logging(config)

    lifecycle = ServerLifecycle(config)
    try:
        lifecycle.init()
    except SDKInitError as e:
        logger.error(str(e))
        return 1

    if args.transport == "http":
        from imessage_mcp.http_app import run_http

        run_http(
            lifecycle,
            host=args.host or config["http"]["host"],
            port=args.port or config["http"]["port"],
        )
        return 0

    try:
        asyncio.run(lifecycle.run_stdio())
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("iMessage MCP server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
