"""
sqlbridge/server.py
===================

FastAPI application exposing the tool server over SSE.

Endpoints
---------
- ``GET  /sse``: opens a session and streams its replies.
- ``POST /message?sessionId=<id>``: one JSON-RPC message for that session.
  ``404`` if the session is unknown, ``400`` if the body is not JSON-RPC,
  otherwise ``202`` (the reply arrives on the SSE stream).
- ``GET  /health``: liveness and live-session count.

``create_app`` wires one ``Toolkit``, one ``ToolExecutor`` and one
``SessionMultiplexer`` per application; each session gets its own
``ProtocolHandler`` over the shared executor.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from mcp import types
from pydantic import ValidationError
from starlette.background import BackgroundTask

from .config import Config
from .core.executor import ToolExecutor
from .core.protocol import ProtocolHandler
from .core.registry import ToolRegistry
from .core.sessions import SessionMultiplexer
from .errors import SessionNotFound
from .tool_definitions import registry as default_registry
from .tools.toolkit import Toolkit

logger = logging.getLogger(__name__)


def create_app(
    config: Config | None = None,
    toolkit: Toolkit | None = None,
    registry: ToolRegistry | None = None,
) -> FastAPI:
    config = config or Config.from_env()
    if toolkit is None:
        toolkit = Toolkit(config)
    if registry is None:
        registry = default_registry
    executor = ToolExecutor(registry, toolkit)

    def handler_factory():
        return ProtocolHandler(registry, executor, config.server_name, config.server_version).handle

    multiplexer = SessionMultiplexer(
        handler_factory,
        message_path=config.message_path,
        ping_interval=config.sse_ping_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Tool server ready with %d tools", len(registry))
        yield
        await multiplexer.close_all()
        toolkit.close()

    app = FastAPI(title=config.server_name, version=config.server_version, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.multiplexer = multiplexer
    app.state.executor = executor

    @app.get(config.sse_path)
    async def open_session() -> StreamingResponse:
        session = await multiplexer.connect()
        return StreamingResponse(
            multiplexer.stream(session),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
            background=BackgroundTask(multiplexer.close, session.id),
        )

    @app.post(config.message_path)
    async def post_message(request: Request):
        session_id = request.query_params.get("sessionId")
        if session_id not in multiplexer.registry:
            return PlainTextResponse("Session not found", status_code=404)

        try:
            message = types.JSONRPCMessage.model_validate_json(await request.body())
        except ValidationError as e:
            logger.warning("Malformed message for session %s: %s", session_id, e)
            return PlainTextResponse("Invalid JSON-RPC message", status_code=400)

        try:
            await multiplexer.route(session_id, message)
        except SessionNotFound:
            return PlainTextResponse("Session not found", status_code=404)
        return PlainTextResponse("Accepted", status_code=202)

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "sessions": len(multiplexer.registry)})

    return app


def run(config: Config | None = None) -> None:
    import uvicorn

    config = config or Config.from_env()
    logger.info("MCP Server running on %s:%d", config.host, config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())
