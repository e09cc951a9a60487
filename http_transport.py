import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from config import Settings
from correlator import REQUEST_TIMEOUT_SECONDS, Correlator
from dispatcher import Dispatcher
from protocol import INTERNAL_ERROR, JSONRPCError, ParseError, failure

logger = logging.getLogger(__name__)

SERVICE_NAME = "purelymail-mcp-server"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, Accept",
}


class PermissiveCORSMiddleware:
    """ASGI middleware that opens every route to any origin.

    OPTIONS requests are answered with 200 before routing, whatever the path,
    and every other response gets the CORS headers appended.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=200, headers=CORS_HEADERS)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.extend(
                    (k.lower().encode("latin-1"), v.encode("latin-1"))
                    for k, v in CORS_HEADERS.items()
                )
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_cors)


async def _read_json(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body)
    except ValueError as exc:
        raise ParseError(f"Parse error: {exc}") from exc


def create_app(
    dispatcher: Dispatcher,
    correlator: Correlator | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> Starlette:
    """Build the HTTP app. Its lifespan runs the dispatcher on the correlator."""
    correlator = correlator or Correlator(timeout=timeout)
    registry = dispatcher.registry

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {"status": "ok", "service": SERVICE_NAME, "transport": "http"}
        )

    async def mcp_endpoint(request: Request) -> Response:
        message: Any = None
        try:
            message = await _read_json(request)
            reply = await correlator.submit(message)
        except JSONRPCError as exc:
            return JSONResponse(exc.to_response(), status_code=exc.status_code)
        except Exception as exc:
            logger.exception("Error handling MCP request")
            request_id = message.get("id") if isinstance(message, dict) else None
            return JSONResponse(
                failure(request_id, INTERNAL_ERROR, str(exc) or "Internal server error"),
                status_code=500,
            )

        if reply is None:
            return Response(status_code=204)
        return JSONResponse(reply)

    async def list_tools(request: Request) -> JSONResponse:
        return JSONResponse({"tools": registry.describe()})

    async def _run_tool(name: str, arguments: Any) -> JSONResponse:
        tool = registry.get(name)
        if tool is None:
            return JSONResponse(
                {"error": f"Unknown tool: {name}", "availableTools": registry.names},
                status_code=404,
            )
        if not isinstance(arguments, dict):
            return JSONResponse(
                {"success": False, "error": "arguments must be an object"},
                status_code=400,
            )
        try:
            result = await tool.execute(arguments)
        except Exception as exc:
            logger.info("Tool %s failed: %s", name, exc)
            return JSONResponse({"success": False, "error": str(exc)}, status_code=500)
        return JSONResponse({"success": True, "result": result})

    async def call_named_tool(request: Request) -> JSONResponse:
        try:
            body = await _read_json(request) if await request.body() else {}
        except ParseError as exc:
            return JSONResponse({"error": exc.message}, status_code=400)
        arguments = body.get("arguments", body) if isinstance(body, dict) else body
        return await _run_tool(request.path_params["tool_name"], arguments)

    async def call_tool(request: Request) -> JSONResponse:
        try:
            body = await _read_json(request)
        except ParseError as exc:
            return JSONResponse({"error": exc.message}, status_code=400)
        name = body.get("name") if isinstance(body, dict) else None
        if not name:
            return JSONResponse(
                {"error": "Tool name is required", "availableTools": registry.names},
                status_code=400,
            )
        return await _run_tool(name, body.get("arguments") or {})

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        worker = asyncio.create_task(dispatcher.serve(correlator))
        # Let the worker attach before the first request arrives.
        await asyncio.sleep(0)
        try:
            yield
        finally:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/mcp", mcp_endpoint, methods=["POST"]),
            Route("/tools", list_tools, methods=["GET"]),
            Route("/tools/{tool_name}", call_named_tool, methods=["POST"]),
            Route("/call", call_tool, methods=["POST"]),
        ],
        middleware=[Middleware(PermissiveCORSMiddleware)],
        lifespan=lifespan,
    )
    app.state.correlator = correlator
    return app


def serve(app: Starlette, settings: Settings) -> None:
    logger.info("Listening on http://%s:%s", settings.host, settings.port)
    logger.info("Endpoint: POST /mcp, health: GET /health")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
