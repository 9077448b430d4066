"""Tests for mcp_sse_bridge.transport — SseSessionTransport."""

from __future__ import annotations

import anyio
import pytest
from asgi_client import AsgiCall, jsonrpc_request
from mcp.shared.message import ServerMessageMetadata, SessionMessage
from mcp.types import JSONRPCMessage, JSONRPCNotification
from pydantic import ValidationError
from starlette.requests import Request

from mcp_sse_bridge.transport import SseSessionTransport


def _post(body: bytes, session_id: str = "abc") -> Request:
    call = AsgiCall(
        app=None,  # type: ignore[arg-type]
        method="POST",
        path="/__mcp/messages",
        query_string=f"sessionId={session_id}",
        body=body,
    )
    return Request(call.scope, call.receive)


class TestSessionId:
    def test_fresh_id_per_transport(self) -> None:
        ids = {SseSessionTransport("/__mcp/messages").session_id for _ in range(100)}
        assert len(ids) == 100

    def test_endpoint_uri_carries_session_id(self) -> None:
        transport = SseSessionTransport("/__mcp/messages")
        assert transport.endpoint_uri == f"/__mcp/messages?sessionId={transport.session_id}"


class TestHandlePostMessage:
    async def test_valid_message_relayed(self) -> None:
        transport = SseSessionTransport("/__mcp/messages")
        received: list[SessionMessage | Exception] = []

        async def consume() -> None:
            received.append(await transport.read_stream.receive())

        async with anyio.create_task_group() as tg:
            tg.start_soon(consume)
            response = await transport.handle_post_message(_post(jsonrpc_request("ping", 7)))

        assert response.status_code == 202
        assert response.body == b"Accepted"
        (item,) = received
        assert isinstance(item, SessionMessage)
        assert item.message.root.method == "ping"
        assert item.message.root.id == 7
        assert isinstance(item.metadata, ServerMessageMetadata)
        assert item.metadata.request_context is not None

    async def test_unparsable_body_rejected(self) -> None:
        transport = SseSessionTransport("/__mcp/messages")
        received: list[SessionMessage | Exception] = []

        async def consume() -> None:
            received.append(await transport.read_stream.receive())

        async with anyio.create_task_group() as tg:
            tg.start_soon(consume)
            response = await transport.handle_post_message(_post(b"{not json"))

        assert response.status_code == 400
        assert response.body == b"Could not parse message"
        (item,) = received
        assert isinstance(item, ValidationError)

    async def test_post_after_close_inbound_raises(self) -> None:
        transport = SseSessionTransport("/__mcp/messages")
        await transport.close_inbound()
        with pytest.raises(anyio.ClosedResourceError):
            await transport.handle_post_message(_post(jsonrpc_request()))

    async def test_aclose_is_idempotent(self) -> None:
        transport = SseSessionTransport("/__mcp/messages")
        await transport.aclose()
        await transport.aclose()
        with pytest.raises(anyio.ClosedResourceError):
            await transport.write_stream.send(
                SessionMessage(
                    message=JSONRPCMessage(
                        JSONRPCNotification(jsonrpc="2.0", method="notifications/progress")
                    )
                )
            )


class TestStream:
    async def test_endpoint_event_then_messages(self) -> None:
        transport = SseSessionTransport("/__mcp/messages")
        call = AsgiCall(app=None, method="GET", path="/__mcp/sse")  # type: ignore[arg-type]
        notification = JSONRPCMessage(
            JSONRPCNotification(jsonrpc="2.0", method="notifications/tools/list_changed")
        )

        with anyio.fail_after(5):
            async with anyio.create_task_group() as tg:
                tg.start_soon(
                    transport.stream,
                    call.scope,
                    call.receive,
                    call.send,
                    {"X-Test": "yes"},
                )
                (endpoint,) = await call.wait_for_event("endpoint")
                await transport.write_stream.send(SessionMessage(message=notification))
                (message,) = await call.wait_for_event("message")
                call.disconnect()

        assert endpoint == transport.endpoint_uri
        assert "notifications/tools/list_changed" in message
        assert call.status == 200
        assert call.headers["content-type"].startswith("text/event-stream")
        assert call.headers["x-test"] == "yes"
