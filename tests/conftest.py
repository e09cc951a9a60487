import asyncio

import pytest

from dispatcher import Dispatcher
from tools import Operation, ToolRegistry

ECHO_SCHEMA = {
    "type": "object",
    "properties": {"text": {"type": "string"}},
    "required": ["text"],
}


async def _echo(arguments):
    return {"echo": arguments["text"]}


async def _explode(arguments):
    raise RuntimeError("upstream rejected the request")


async def _slow(arguments):
    await asyncio.sleep(arguments.get("delay", 0.05))
    return {"slept": arguments.get("delay", 0.05)}


@pytest.fixture
def registry():
    return ToolRegistry(
        [
            Operation("echo", "Echo the text back.", ECHO_SCHEMA, _echo),
            Operation("explode", "Always fails.", {"type": "object"}, _explode),
            Operation("slow", "Sleeps before answering.", {"type": "object"}, _slow),
        ]
    )


@pytest.fixture
def dispatcher(registry):
    return Dispatcher(registry)
