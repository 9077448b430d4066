"""Error types for mcp-sse-bridge.

Route handlers raise ``RouteError`` subclasses internally and translate
them into plain-text responses at the handler boundary. Client-visible
bodies carry only the standard reason phrase.
"""

from __future__ import annotations

from http import HTTPStatus


class BridgeError(Exception):
    """Base class for all mcp-sse-bridge errors."""


class DuplicateSessionError(BridgeError):
    """A session id was registered twice.

    Session ids are minted by the transport and must never collide, so
    this indicates a programming error rather than a client fault.
    """

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id!r} is already registered")
        self.session_id = session_id


class RouteError(BridgeError):
    """A request that ends in a non-success HTTP status.

    Attributes:
        status_code: HTTP status returned to the client.
    """

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR


class BadRequestError(RouteError):
    """The ``sessionId`` query parameter is missing or empty."""

    status_code = HTTPStatus.BAD_REQUEST


class SessionNotFoundError(RouteError):
    """No open session matches the requested id."""

    status_code = HTTPStatus.NOT_FOUND


class MethodNotAllowedError(RouteError):
    """The message route only accepts POST."""

    status_code = HTTPStatus.METHOD_NOT_ALLOWED


class DeliveryError(RouteError):
    """Relaying a message into a session's transport failed."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
