"""JSON-RPC 2.0 envelopes and the protocol error taxonomy."""

from typing import Any

from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)

JSONRPC_VERSION = "2.0"

# MCP's RequestTimeout code, in the server-defined range
REQUEST_TIMEOUT = -32001

RequestId = str | int


class JSONRPCError(Exception):
    """A protocol-level failure that is answered with an error envelope."""

    code = INTERNAL_ERROR
    status_code = 500

    def __init__(
        self, message: str, request_id: Any = None, data: Any = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.data = data

    def to_response(self, request_id: Any = None) -> dict[str, Any]:
        if request_id is None:
            request_id = self.request_id
        return failure(request_id, self.code, self.message, self.data)


class ParseError(JSONRPCError):
    code = PARSE_ERROR
    status_code = 400


class InvalidRequestError(JSONRPCError):
    code = INVALID_REQUEST
    status_code = 400


class MethodNotFoundError(JSONRPCError):
    code = METHOD_NOT_FOUND


class InvalidParamsError(JSONRPCError):
    code = INVALID_PARAMS


class InternalError(JSONRPCError):
    pass


class RequestTimeoutError(JSONRPCError):
    code = REQUEST_TIMEOUT


def success(request_id: RequestId, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def failure(
    request_id: Any, code: int, message: str, data: Any = None
) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def is_notification(message: dict[str, Any]) -> bool:
    return message.get("id") is None


def validate_envelope(message: Any) -> None:
    """Raise InvalidRequestError unless ``message`` is a well-formed request or notification."""
    if not isinstance(message, dict):
        raise InvalidRequestError("Invalid Request: message must be a JSON object")

    request_id = message.get("id")
    if message.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidRequestError(
            'Invalid Request: missing or invalid jsonrpc field (must be "2.0")',
            request_id,
        )
    if not message.get("method"):
        raise InvalidRequestError("Invalid Request: missing method field", request_id)
    if not isinstance(message["method"], str):
        raise InvalidRequestError("Invalid Request: method must be a string", request_id)
    # bool is an int subclass but never a valid id
    if request_id is not None and (
        isinstance(request_id, bool) or not isinstance(request_id, (str, int))
    ):
        raise InvalidRequestError(
            "Invalid Request: id must be a string, integer or null"
        )
