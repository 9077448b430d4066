"""SSE and message route handlers for mcp-sse-bridge.

``SseEndpoint`` opens a session stream and keeps it registered for as
long as the client stays connected. ``MessageEndpoint`` looks a session
up by id and hands it one POSTed message. Both are plain ASGI callables
so either entry point can mount them as Starlette routes.

Every response from these routes carries permissive CORS headers, and
every failure is turned into a plain-text status response here; nothing
escapes to the server.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

import anyio
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from mcp_sse_bridge.connector import ProtocolServerConnector
from mcp_sse_bridge.errors import (
    BadRequestError,
    DeliveryError,
    MethodNotAllowedError,
    RouteError,
    SessionNotFoundError,
)
from mcp_sse_bridge.models import EntryPoint, RouteConfig, Session
from mcp_sse_bridge.registry import SessionRegistry
from mcp_sse_bridge.transport import SseSessionTransport

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def plain_response(status_code: int) -> Response:
    """Plain-text response whose body is the status reason phrase."""
    return PlainTextResponse(
        HTTPStatus(status_code).phrase, status_code=status_code, headers=CORS_HEADERS
    )


def preflight_response() -> Response:
    """Header-only 204 answering a CORS preflight."""
    return Response(status_code=HTTPStatus.NO_CONTENT, headers=CORS_HEADERS)


async def not_found(request: Request, exc: HTTPException) -> Response:
    """Starlette 404 handler that keeps the CORS headers."""
    return plain_response(HTTPStatus.NOT_FOUND)


class SseEndpoint:
    """ASGI handler for the streaming route.

    Mints a transport and session, registers it, attaches the protocol
    server, and serves the stream until the client goes away. The
    session is removed from the registry on every exit path.

    Args:
        registry: Shared session registry.
        connector: Protocol server to attach to each new transport.
        message_path: Path advertised to clients for posting messages.
        origin: Entry point this handler is mounted on.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        connector: ProtocolServerConnector,
        message_path: str,
        origin: EntryPoint = EntryPoint.PRIMARY,
    ) -> None:
        self._registry = registry
        self._connector = connector
        self._message_path = message_path
        self._origin = origin

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["method"] == "OPTIONS":
            await preflight_response()(scope, receive, send)
            return

        transport = SseSessionTransport(self._message_path)
        session = Session(id=transport.session_id, transport=transport, created_via=self._origin)
        try:
            with self._registry.track(session):
                logger.debug("SSE session %s opened via %s", session.id, self._origin)
                await self._serve(transport, scope, receive, send)
        except Exception:
            logger.warning("SSE session %s failed", session.id, exc_info=True)
        finally:
            await transport.aclose()
        logger.debug("SSE session %s closed", session.id)

    async def _serve(
        self,
        transport: SseSessionTransport,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the stream and the connector until the client disconnects."""
        async with anyio.create_task_group() as tg:

            async def stream_until_disconnect() -> None:
                await transport.stream(scope, receive, send, headers=CORS_HEADERS)
                tg.cancel_scope.cancel()

            tg.start_soon(stream_until_disconnect)
            try:
                await self._connector.connect(transport)
            except Exception:
                # The session stays registered until the client disconnects
                logger.warning(
                    "Protocol server failed to connect to session %s",
                    transport.session_id,
                    exc_info=True,
                )
            else:
                logger.debug("Protocol server detached from session %s", transport.session_id)
            # Nothing reads inbound once connect() is over; later posts get 500
            await transport.close_inbound()
            await anyio.sleep_forever()


class MessageEndpoint:
    """ASGI handler for the message route.

    Resolves ``sessionId`` against the registry and delegates the request
    to that session's transport. Never mutates the registry.

    Args:
        registry: Shared session registry.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await self.dispatch(request)
        await response(scope, receive, send)

    async def dispatch(self, request: Request) -> Response:
        """Route one request to a response. Never raises."""
        if request.method == "OPTIONS":
            return preflight_response()
        try:
            session = self._resolve(request)
            return await self._deliver(session, request)
        except RouteError as exc:
            return plain_response(exc.status_code)

    def _resolve(self, request: Request) -> Session:
        if request.method != "POST":
            raise MethodNotAllowedError()
        session_id = request.query_params.get("sessionId")
        if not session_id:
            logger.debug("Rejected message without sessionId")
            raise BadRequestError()
        session = self._registry.lookup(session_id)
        if session is None:
            logger.debug("Rejected message for unknown session %s", session_id)
            raise SessionNotFoundError()
        return session

    async def _deliver(self, session: Session, request: Request) -> Response:
        logger.debug("Message for session %s", session.id)
        try:
            response = await session.transport.handle_post_message(request)
        except Exception as exc:
            logger.warning("Delivering message to session %s failed", session.id, exc_info=True)
            raise DeliveryError() from exc
        response.headers.update(CORS_HEADERS)
        return response


def build_routes(
    config: RouteConfig,
    registry: SessionRegistry,
    connector: ProtocolServerConnector,
    origin: EntryPoint,
) -> list[Route]:
    """Build the streaming and message routes for one entry point.

    Args:
        config: Route configuration (paths).
        registry: Registry shared by all entry points.
        connector: Protocol server to attach to new sessions.
        origin: Entry point the routes are mounted on.

    Returns:
        Starlette routes accepting every HTTP method.
    """
    return [
        Route(
            config.sse_path,
            endpoint=SseEndpoint(registry, connector, config.message_path, origin),
        ),
        Route(config.message_path, endpoint=MessageEndpoint(registry)),
    ]
