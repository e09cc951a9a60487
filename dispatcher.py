"""MCP method handling shared by the stdio and HTTP transports."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from mcp.types import (
    INTERNAL_ERROR,
    LATEST_PROTOCOL_VERSION,
    CallToolResult,
    Implementation,
    InitializeResult,
    ServerCapabilities,
    TextContent,
    ToolsCapability,
)

from correlator import Correlator
from protocol import (
    InvalidParamsError,
    JSONRPCError,
    MethodNotFoundError,
    failure,
    is_notification,
    success,
)
from tools import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "purelymail-server"
SERVER_VERSION = "1.0.0"

INSTRUCTIONS = (
    "You have access to a PurelyMail account. Use list_domains and list_users "
    "to see what exists, list_routing_rules for aliases and forwards, and the "
    "create/modify/delete tools to change the account."
)

Handler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class Dispatcher:
    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry
        self._methods: dict[str, Handler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    async def handle(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Run one inbound message and build its reply.

        Returns None for notifications. Never raises: protocol errors and
        unexpected failures both come back as error envelopes.
        """
        request_id = message.get("id")
        method = message.get("method")

        if is_notification(message):
            await self._notify(method, message.get("params"))
            return None

        try:
            result = await self._dispatch(method, message.get("params"))
        except JSONRPCError as exc:
            return exc.to_response(request_id)
        except Exception:
            logger.exception("Unhandled error while handling %s", method)
            return failure(request_id, INTERNAL_ERROR, "Internal error")
        return success(request_id, result)

    async def serve(self, correlator: Correlator) -> None:
        """Consume the correlator's channel until cancelled."""
        inbox = correlator.open_channel()
        tasks: set[asyncio.Task] = set()
        logger.debug("Dispatcher attached")
        try:
            while True:
                message = await inbox.get()
                task = asyncio.create_task(self._deliver(message, correlator))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
        finally:
            correlator.close_channel()
            pending = list(tasks)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug("Dispatcher detached")

    async def _deliver(self, message: dict[str, Any], correlator: Correlator) -> None:
        reply = await self.handle(message)
        if reply is not None:
            correlator.resolve(reply)

    async def _dispatch(self, method: Any, params: Any) -> dict[str, Any]:
        handler = self._methods.get(method)
        if handler is None:
            raise MethodNotFoundError(
                f"Method not found: {method}",
                data={"supportedMethods": self.methods},
            )
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise InvalidParamsError("Invalid params: params must be an object")
        return await handler(params)

    async def _notify(self, method: Any, params: Any) -> None:
        if isinstance(method, str) and method.startswith("notifications/"):
            logger.debug("Received %s", method)
            return
        try:
            await self._dispatch(method, params)
        except JSONRPCError as exc:
            logger.warning("Dropping notification %s: %s", method, exc.message)
        except Exception:
            logger.exception("Unhandled error while handling notification %s", method)

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client = params.get("clientInfo") or {}
        logger.info(
            "Initialize from %s %s (protocol %s)",
            client.get("name", "unknown client"),
            client.get("version", ""),
            params.get("protocolVersion"),
        )
        result = InitializeResult(
            protocolVersion=LATEST_PROTOCOL_VERSION,
            capabilities=ServerCapabilities(tools=ToolsCapability(listChanged=False)),
            serverInfo=Implementation(name=SERVER_NAME, version=SERVER_VERSION),
            instructions=INSTRUCTIONS,
        )
        return result.model_dump(by_alias=True, exclude_none=True)

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": self.registry.describe()}

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not name or not isinstance(name, str):
            raise InvalidParamsError("Invalid params: tool name is required")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Invalid params: arguments must be an object")

        tool = self.registry.get(name)
        if tool is None:
            raise MethodNotFoundError(
                f"Unknown tool: {name}",
                data={"availableTools": self.registry.names},
            )

        try:
            result = await tool.execute(arguments)
        except Exception as exc:
            # Tool failures go back as content so the agent can read them.
            logger.info("Tool %s failed: %s", name, exc)
            content = TextContent(type="text", text=f"Error: {exc}")
            return CallToolResult(content=[content], isError=True).model_dump(
                by_alias=True, exclude_none=True
            )

        text = json.dumps(result, indent=2, default=str)
        content = TextContent(type="text", text=text)
        return CallToolResult(content=[content], isError=False).model_dump(
            by_alias=True, exclude_none=True
        )
