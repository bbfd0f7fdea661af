"""
HTTP transport for the iMessage MCP server.

Serves MCP's JSON-RPC 2.0 messages on ``POST /mcp`` using plain JSON
responses (no streaming). Run with:

    imessage-mcp --transport http --port 8765
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from mcp import types

from imessage_mcp.dispatcher import ToolDispatcher
from imessage_mcp.server import ServerLifecycle
from imessage_mcp.tools import TOOL_DEFINITIONS
from imessage_mcp.utils.errors import UnknownOperation

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


def _result(request_id: Any, result: dict) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def _error(request_id: Any, code: int, message: str) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}


async def handle_jsonrpc(message: Any, dispatcher: ToolDispatcher, config: dict) -> Optional[dict]:
    """
    Handle one JSON-RPC message.

    Args:
        message: Decoded JSON-RPC request or notification
        dispatcher: Tool dispatcher serving ``tools/call``
        config: Server configuration (name and version for ``initialize``)

    Returns:
        The JSON-RPC response, or None for notifications
    """
    if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
        return _error(None, types.INVALID_REQUEST, "Invalid Request")

    method = message.get("method")
    request_id = message.get("id")
    if not isinstance(method, str):
        return _error(request_id, types.INVALID_REQUEST, "Invalid Request")
    if "id" not in message:
        logger.debug(f"Notification received: {method}")
        return None

    params = message.get("params") or {}
    if not isinstance(params, dict):
        return _error(request_id, types.INVALID_PARAMS, "params must be an object")

    if method == "initialize":
        return _result(request_id, {
            "protocolVersion": params.get("protocolVersion") or types.LATEST_PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": config["server_name"], "version": config["version"]},
        })

    if method == "ping":
        return _result(request_id, {})

    if method == "tools/list":
        return _result(request_id, {
            "tools": [
                tool.model_dump(mode="json", by_alias=True, exclude_none=True)
                for tool in TOOL_DEFINITIONS
            ]
        })

    if method == "tools/call":
        name = params.get("name")
        if not isinstance(name, str):
            return _error(request_id, types.INVALID_PARAMS, "params.name must be a string")
        try:
            result = await dispatcher.dispatch(name, params.get("arguments"))
        except UnknownOperation as e:
            return _error(request_id, types.METHOD_NOT_FOUND, str(e))
        return _result(request_id, result.to_dict())

    return _error(request_id, types.METHOD_NOT_FOUND, f"Method not found: {method}")


def create_http_app(lifecycle: ServerLifecycle) -> FastAPI:
    """
    Build the FastAPI app for ``lifecycle``.

    The app lifespan initializes the gateway on startup and runs the
    lifecycle's shutdown when the server stops.
    """
    config = lifecycle.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        lifecycle.init()
        logger.info(f"HTTP transport ready: {config['server_name']} {config['version']}")
        yield
        await lifecycle.shutdown()

    app = FastAPI(
        title=config["server_name"],
        version=config["version"],
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "server": config["server_name"],
            "version": config["version"],
        }

    @app.post("/mcp")
    async def mcp_endpoint(request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse(_error(None, types.PARSE_ERROR, "Parse error"))

        dispatcher = lifecycle.init()

        if isinstance(payload, list):
            if not payload:
                return JSONResponse(_error(None, types.INVALID_REQUEST, "Invalid Request"))
            responses = [
                response
                for response in [await handle_jsonrpc(item, dispatcher, config) for item in payload]
                if response is not None
            ]
            if not responses:
                return Response(status_code=202)
            return JSONResponse(responses)

        response = await handle_jsonrpc(payload, dispatcher, config)
        if response is None:
            return Response(status_code=202)
        return JSONResponse(response)

    return app


def run_http(lifecycle: ServerLifecycle, host: str, port: int) -> None:
    """Serve the HTTP transport with uvicorn until interrupted."""
    logger.info(f"Starting iMessage MCP Server on http://{host}:{port}/mcp")
    uvicorn.run(create_http_app(lifecycle), host=host, port=port, log_config=None)
