"""
Toolgate HTTP Transport

FastAPI binding of the gateway. One request body in, one envelope out:

    POST /mcp     {name, arguments} → ResponseEnvelope
    GET  /tools   tool definitions with input schemas

Malformed JSON is answered with 400 {"error": "Invalid JSON"} and never
reaches the gateway. Unknown routes get 404 {"error": "Not Found"}.

Usage:
    uvicorn --factory toolgate.transports.http:create_default_app
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from toolgate import __version__
from toolgate.gateway.dispatcher import Gateway, build_gateway
from toolgate.logging import get_logger
from toolgate.transports.sse import SseBroadcaster, mount_events

logger = get_logger("toolgate.http")


def install_not_found(app: FastAPI) -> None:
    """Answer every unmatched route or method with a JSON 404."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return JSONResponse({"error": "Not Found"}, status_code=404)
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)


def create_http_app(gateway: Gateway, broadcaster: SseBroadcaster | None = None) -> FastAPI:
    """Build the HTTP app. With a broadcaster, ``GET /events`` is served too."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("HTTP transport started", extra={"transport": "http"})
        yield
        if broadcaster is not None:
            broadcaster.close_all()
        gateway.shutdown()

    app = FastAPI(
        title="Toolgate",
        description="Tool invocation gateway for AI agents",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_not_found(app)

    @app.post("/mcp")
    async def call_tool(request: Request) -> JSONResponse:
        raw = await request.body()
        try:
            body = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Rejected malformed request body", extra={"transport": "http"})
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)

        envelope = await gateway.handle_raw(body)
        return JSONResponse(envelope.to_wire())

    @app.get("/tools")
    async def list_tools() -> dict:
        return {"tools": gateway.list_tools()}

    if broadcaster is not None:
        mount_events(app, broadcaster)

    return app


def create_default_app() -> FastAPI:
    return create_http_app(build_gateway())
