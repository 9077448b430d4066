"""Protocol server connectors for mcp-sse-bridge.

The bridge consumes the MCP server through a single capability:
``connect(transport)``. This module defines that protocol, an adapter
for MCP SDK low-level servers, and helpers that resolve whatever the
user names on the command line into a connector.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Protocol, runtime_checkable

from mcp.server.lowlevel import Server

from mcp_sse_bridge.transport import SseSessionTransport

logger = logging.getLogger(__name__)


@runtime_checkable
class ProtocolServerConnector(Protocol):
    """Attaches protocol logic to a freshly opened session transport.

    ``connect()`` may run for the whole life of the session. Once
    attached, the connector may write to ``transport.write_stream`` at
    any time until the stream closes.
    """

    async def connect(self, transport: SseSessionTransport) -> None:
        """Attach to a transport.

        Args:
            transport: The new session's transport.

        Raises:
            Exception: If protocol negotiation or the connection fails.
        """
        ...


class LowLevelServerConnector:
    """Runs an MCP SDK low-level ``Server`` over a session transport.

    Args:
        server: The low-level server. FastMCP wraps one of these.
        raise_exceptions: Passed to ``Server.run()``; re-raise handler
            errors instead of replying with JSON-RPC errors.
    """

    def __init__(self, server: Server[Any, Any], raise_exceptions: bool = False) -> None:
        self._server = server
        self._raise_exceptions = raise_exceptions

    @property
    def server(self) -> Server[Any, Any]:
        """The wrapped low-level server."""
        return self._server

    async def connect(self, transport: SseSessionTransport) -> None:
        """Serve the session until its inbound stream ends."""
        logger.debug("Running %s for session %s", self._server.name, transport.session_id)
        await self._server.run(
            transport.read_stream,
            transport.write_stream,
            self._server.create_initialization_options(),
            raise_exceptions=self._raise_exceptions,
        )


def connector_for(target: Any) -> ProtocolServerConnector:
    """Resolve a server object into a connector.

    Args:
        target: A connector, an MCP low-level ``Server``, or a FastMCP
            instance (from ``mcp.server.fastmcp`` or the ``fastmcp``
            package), which both expose their low-level server as
            ``_mcp_server``.

    Returns:
        A connector for the target.

    Raises:
        TypeError: If the target is none of the supported kinds.
    """
    if isinstance(target, Server):
        return LowLevelServerConnector(target)
    if isinstance(getattr(target, "_mcp_server", None), Server):
        return LowLevelServerConnector(target._mcp_server)
    if isinstance(target, ProtocolServerConnector) and not isinstance(target, type):
        return target
    raise TypeError(
        f"Cannot serve {type(target).__name__!r}: expected an MCP Server, "
        "a FastMCP instance, or an object with an async connect(transport) method"
    )


def load_connector(spec: str) -> ProtocolServerConnector:
    """Import a server named as ``module:attribute`` and wrap it.

    The attribute may be a server object or a zero-argument factory
    returning one.

    Args:
        spec: Import path such as ``my_app.server:mcp``.

    Returns:
        A connector for the imported server.

    Raises:
        ValueError: If the spec is malformed or the attribute is missing.
        ImportError: If the module cannot be imported.
        TypeError: If the attribute is not a supported server kind.
    """
    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {spec!r}")

    module = importlib.import_module(module_name)
    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ValueError(f"Module {module_name!r} has no attribute {attribute!r}") from exc

    try:
        return connector_for(target)
    except TypeError:
        if not callable(target):
            raise
    logger.debug("Calling factory %s to build the protocol server", spec)
    return connector_for(target())
