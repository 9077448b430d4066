"""Shared fixtures and fake protocol servers for mcp-sse-bridge tests."""

from __future__ import annotations

import pytest
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage, JSONRPCResponse
from sse_starlette.sse import AppStatus

from mcp_sse_bridge.models import RouteConfig
from mcp_sse_bridge.registry import SessionRegistry
from mcp_sse_bridge.transport import SseSessionTransport

# ---------------------------------------------------------------------------
# Fake connectors
# ---------------------------------------------------------------------------


class RecordingConnector:
    """Consumes every inbound item and remembers it, per session."""

    def __init__(self) -> None:
        self.transports: list[SseSessionTransport] = []
        self.received: list[tuple[str, SessionMessage | Exception]] = []

    async def connect(self, transport: SseSessionTransport) -> None:
        self.transports.append(transport)
        async for item in transport.read_stream:
            self.received.append((transport.session_id, item))


class EchoConnector(RecordingConnector):
    """Answers every request with a result naming the session."""

    async def connect(self, transport: SseSessionTransport) -> None:
        self.transports.append(transport)
        async for item in transport.read_stream:
            self.received.append((transport.session_id, item))
            if isinstance(item, Exception):
                continue
            root = item.message.root
            if getattr(root, "method", None) is None or not hasattr(root, "id"):
                continue
            reply = JSONRPCResponse(
                jsonrpc="2.0",
                id=root.id,
                result={"session": transport.session_id, "method": root.method},
            )
            await transport.write_stream.send(SessionMessage(message=JSONRPCMessage(reply)))


class FailingConnector:
    """Fails protocol negotiation immediately."""

    def __init__(self) -> None:
        self.attempts: list[SseSessionTransport] = []

    async def connect(self, transport: SseSessionTransport) -> None:
        self.attempts.append(transport)
        raise RuntimeError("protocol negotiation failed")


class ReturningConnector:
    """Attaches to the transport and returns at once."""

    def __init__(self) -> None:
        self.attempts: list[SseSessionTransport] = []

    async def connect(self, transport: SseSessionTransport) -> None:
        self.attempts.append(transport)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_sse_app_status() -> None:
    """sse-starlette caches an exit event bound to the first event loop."""
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def config() -> RouteConfig:
    return RouteConfig()


@pytest.fixture
def recording_connector() -> RecordingConnector:
    return RecordingConnector()


@pytest.fixture
def echo_connector() -> EchoConnector:
    return EchoConnector()


@pytest.fixture
def failing_connector() -> FailingConnector:
    return FailingConnector()


@pytest.fixture
def returning_connector() -> ReturningConnector:
    return ReturningConnector()
