import asyncio
import json
import logging
import sys
from typing import Any, TextIO

from dispatcher import Dispatcher
from protocol import PARSE_ERROR, JSONRPCError, failure, validate_envelope

logger = logging.getLogger(__name__)


class StdioTransport:
    """Newline-delimited JSON-RPC over stdin/stdout.

    Each input line is handled in its own task, so a slow tool call does not
    hold up the lines behind it. Replies are written as they complete.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        reader: TextIO | None = None,
        writer: TextIO | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._reader = reader or sys.stdin
        self._writer = writer or sys.stdout

    async def run(self) -> None:
        """Serve until EOF on the reader, then wait for in-flight lines."""
        tasks: set[asyncio.Task] = set()
        logger.info("Serving MCP over stdio")
        while True:
            line = await asyncio.to_thread(self._reader.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            task = asyncio.create_task(self._handle_line(line))
            tasks.add(task)
            task.add_done_callback(tasks.discard)

        if tasks:
            await asyncio.gather(*tasks)
        logger.info("stdin closed, shutting down")

    async def _handle_line(self, line: str) -> None:
        try:
            message = json.loads(line)
        except ValueError as exc:
            self._write(failure(None, PARSE_ERROR, f"Parse error: {exc}"))
            return

        try:
            validate_envelope(message)
        except JSONRPCError as exc:
            self._write(exc.to_response())
            return

        reply = await self._dispatcher.handle(message)
        if reply is not None:
            self._write(reply)

    def _write(self, message: dict[str, Any]) -> None:
        self._writer.write(json.dumps(message, separators=(",", ":")) + "\n")
        self._writer.flush()
