"""SSE session transport for mcp-sse-bridge.

One ``SseSessionTransport`` backs one client session. Its outbound half
is a Server-Sent-Events response; its inbound half accepts discrete
POSTed JSON-RPC messages. The protocol server sees only a pair of anyio
memory streams, the same shape the MCP SDK's own transports hand to
``Server.run()``.

Stream framing follows the MCP SSE convention: an ``endpoint`` event
telling the client where to POST, then one ``message`` event per
server-to-client JSON-RPC frame.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote
from uuid import uuid4

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.shared.message import ServerMessageMetadata, SessionMessage
from mcp.types import JSONRPCMessage
from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import Receive, Scope, Send

logger = logging.getLogger(__name__)


class SseSessionTransport:
    """A single SSE stream plus the capability to accept messages for it.

    Args:
        endpoint: Path clients POST messages to. Advertised to the client
            in the ``endpoint`` event together with the session id.

    Attributes:
        session_id: Fresh id minted at construction (uuid4 hex).
        read_stream: Client-to-server messages, consumed by the protocol server.
        write_stream: Server-to-client messages, produced by the protocol server.

    Example:
        transport = SseSessionTransport("/__mcp/messages")
        async with anyio.create_task_group() as tg:
            tg.start_soon(transport.stream, scope, receive, send)
            await server.run(transport.read_stream, transport.write_stream, options)
    """

    def __init__(self, endpoint: str) -> None:
        self.session_id = uuid4().hex
        self._endpoint = endpoint
        self._read_stream_writer: MemoryObjectSendStream[SessionMessage | Exception]
        self.read_stream: MemoryObjectReceiveStream[SessionMessage | Exception]
        self.write_stream: MemoryObjectSendStream[SessionMessage]
        self._write_stream_reader: MemoryObjectReceiveStream[SessionMessage]
        self._read_stream_writer, self.read_stream = anyio.create_memory_object_stream[
            SessionMessage | Exception
        ](0)
        self.write_stream, self._write_stream_reader = anyio.create_memory_object_stream[
            SessionMessage
        ](0)

    @property
    def endpoint_uri(self) -> str:
        """Message URI announced to the client in the ``endpoint`` event."""
        return f"{quote(self._endpoint)}?sessionId={self.session_id}"

    async def stream(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Serve the SSE response until the client disconnects.

        Args:
            scope: ASGI scope of the streaming request.
            receive: ASGI receive callable.
            send: ASGI send callable.
            headers: Extra response headers (CORS).
        """
        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream[
            dict[str, Any]
        ](0)

        async def sse_writer() -> None:
            async with sse_stream_writer, self._write_stream_reader:
                await sse_stream_writer.send({"event": "endpoint", "data": self.endpoint_uri})
                async for session_message in self._write_stream_reader:
                    await sse_stream_writer.send(
                        {
                            "event": "message",
                            "data": session_message.message.model_dump_json(
                                by_alias=True, exclude_none=True
                            ),
                        }
                    )

        response = EventSourceResponse(
            content=sse_stream_reader,
            data_sender_callable=sse_writer,
            headers=dict(headers or {}),
        )
        await response(scope, receive, send)
        logger.debug("SSE stream for session %s ended", self.session_id)

    async def handle_post_message(self, request: Request) -> Response:
        """Parse a POSTed JSON-RPC message and relay it to the protocol server.

        Args:
            request: The message-route request addressed to this session.

        Returns:
            202 once the message is handed over, or 400 if the body is not
            a JSON-RPC message.

        Raises:
            anyio.ClosedResourceError: If the inbound side has been closed.
            anyio.BrokenResourceError: If nothing reads the inbound side anymore.
        """
        body = await request.body()
        try:
            message = JSONRPCMessage.model_validate_json(body)
        except ValidationError as err:
            logger.debug("Unparsable message for session %s: %s", self.session_id, err)
            await self._read_stream_writer.send(err)
            return PlainTextResponse("Could not parse message", status_code=400)

        metadata = ServerMessageMetadata(request_context=request)
        await self._read_stream_writer.send(SessionMessage(message=message, metadata=metadata))
        return PlainTextResponse("Accepted", status_code=202)

    async def close_inbound(self) -> None:
        """Stop accepting messages. Later posts fail instead of blocking."""
        await self._read_stream_writer.aclose()
        await self.read_stream.aclose()

    async def aclose(self) -> None:
        """Release all four memory streams. Safe to call multiple times."""
        for stream in (
            self._read_stream_writer,
            self.read_stream,
            self.write_stream,
            self._write_stream_reader,
        ):
            await stream.aclose()
