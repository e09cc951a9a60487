"""Request/reply correlation between HTTP callers and the dispatch channel.

HTTP is synchronous: each POST waits for exactly one answer. The dispatcher is
not: it pulls messages off a queue and pushes replies back whenever they are
ready, in any order. The correlator bridges the two by parking each request on
a future keyed by its JSON-RPC id until the matching reply is resolved or the
timeout expires.
"""

import asyncio
import logging
from typing import Any

from protocol import (
    InternalError,
    InvalidRequestError,
    RequestId,
    RequestTimeoutError,
    is_notification,
    validate_envelope,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30.0


class Correlator:
    def __init__(self, timeout: float = REQUEST_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout
        self._pending: dict[RequestId, asyncio.Future[dict[str, Any]]] = {}
        self._inbox: asyncio.Queue[dict[str, Any]] | None = None

    @property
    def attached(self) -> bool:
        return self._inbox is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def open_channel(self) -> "asyncio.Queue[dict[str, Any]]":
        """Attach a consumer and hand it the inbound message queue."""
        if self._inbox is not None:
            raise RuntimeError("A message handler is already attached")
        self._inbox = asyncio.Queue()
        return self._inbox

    def close_channel(self) -> None:
        """Detach the consumer. Requests still waiting fail with an internal error."""
        self._inbox = None
        pending, self._pending = self._pending, {}
        for request_id, future in pending.items():
            if not future.done():
                future.set_exception(
                    InternalError(
                        "Internal error: message handler detached", request_id
                    )
                )

    async def submit(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Send ``message`` to the dispatcher and wait for its reply.

        Returns None for notifications, which are dropped when no handler is
        attached. Raises a JSONRPCError for a malformed envelope, a request
        with no handler, a duplicate in-flight id, or a timeout.
        """
        validate_envelope(message)
        request_id = message.get("id")

        if is_notification(message):
            if self._inbox is None:
                logger.warning(
                    "No message handler attached; dropping notification %s",
                    message["method"],
                )
            else:
                self._inbox.put_nowait(message)
            return None

        if self._inbox is None:
            raise InternalError(
                "Internal error: message handler not initialized", request_id
            )

        if request_id in self._pending:
            raise InvalidRequestError(
                f"Invalid Request: id {request_id!r} is already in flight",
                request_id,
            )

        future: asyncio.Future[dict[str, Any]] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending[request_id] = future
        self._inbox.put_nowait(message)
        try:
            return await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Request %r (%s) timed out after %ss",
                request_id,
                message["method"],
                self.timeout,
            )
            raise RequestTimeoutError("Request timeout", request_id) from None
        finally:
            # Only drop our own entry; resolve() may already have taken it.
            if self._pending.get(request_id) is future:
                del self._pending[request_id]

    def resolve(self, reply: dict[str, Any]) -> bool:
        """Deliver a reply to the request waiting on its id.

        Returns False, without raising, when nobody is waiting for it anymore.
        """
        request_id = reply.get("id")
        future = self._pending.pop(request_id, None) if request_id is not None else None
        if future is None or future.done():
            logger.warning("No pending request for id %r; dropping reply", request_id)
            return False
        future.set_result(reply)
        return True
