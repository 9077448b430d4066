"""Network entry points for mcp-sse-bridge.

``PrimaryEntryPoint`` serves the SSE and message routes on the main
listener, which may use TLS. ``ProxyEntryPoint`` re-exposes the same
routes over plain HTTP on loopback for clients that refuse the primary
listener's certificate. ``Bridge`` wires both to one shared
``SessionRegistry`` and runs them side by side.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import anyio
import uvicorn
from starlette.applications import Starlette
from starlette.routing import Route

from mcp_sse_bridge.connector import ProtocolServerConnector
from mcp_sse_bridge.models import PROXY_BIND_HOST, EntryPoint, RouteConfig
from mcp_sse_bridge.registry import SessionRegistry
from mcp_sse_bridge.routes import build_routes, not_found

logger = logging.getLogger(__name__)


class Listener(ABC):
    """One network listener serving the bridge routes.

    Subclasses choose the bind address, TLS settings, and advertised URL.
    The registry is held by reference, never copied.

    Args:
        config: Route configuration.
        registry: Registry shared with every other listener.
        connector: Protocol server attached to new sessions.
    """

    origin: EntryPoint

    def __init__(
        self,
        config: RouteConfig,
        registry: SessionRegistry,
        connector: ProtocolServerConnector,
    ) -> None:
        self.config = config
        self.registry = registry
        self.routes: list[Route] = build_routes(config, registry, connector, self.origin)
        self.app = Starlette(routes=self.routes, exception_handlers={404: not_found})

    @property
    @abstractmethod
    def host(self) -> str: ...

    @property
    @abstractmethod
    def port(self) -> int: ...

    @property
    @abstractmethod
    def url(self) -> str:
        """Externally reachable SSE URL of this listener."""

    def _ssl_options(self) -> dict[str, Any]:
        return {}

    def uvicorn_config(self) -> uvicorn.Config:
        """Build the uvicorn configuration for this listener.

        Logging is left to the application's own configuration.
        """
        return uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_config=None,
            **self._ssl_options(),
        )

    def build_server(self) -> uvicorn.Server:
        """Create the uvicorn server that will run this listener."""
        logger.info("%s listener serving %s", self.origin, self.url)
        return uvicorn.Server(self.uvicorn_config())

    async def serve(self) -> None:
        """Serve until uvicorn is asked to exit."""
        await self.build_server().serve()


class PrimaryEntryPoint(Listener):
    """The main listener, on the configured host and port, optionally TLS.

    ``routes`` can also be mounted into an existing Starlette application
    instead of serving ``app`` directly.
    """

    origin = EntryPoint.PRIMARY

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def url(self) -> str:
        return self.config.primary_url

    def _ssl_options(self) -> dict[str, Any]:
        if not self.config.ssl_certfile:
            return {}
        return {
            "ssl_certfile": self.config.ssl_certfile,
            "ssl_keyfile": self.config.ssl_keyfile,
        }


class ProxyEntryPoint(Listener):
    """Plain-HTTP listener bound to loopback on the proxy port."""

    origin = EntryPoint.PROXY

    @property
    def host(self) -> str:
        return PROXY_BIND_HOST

    @property
    def port(self) -> int:
        return self.config.proxy.port

    @property
    def url(self) -> str:
        return self.config.proxy_url


class Bridge:
    """Both entry points over one shared session registry.

    Args:
        config: Route configuration.
        connector: Protocol server attached to every new session.
        registry: Registry to share. A fresh one is created when omitted.

    Example:
        >>> bridge = Bridge(RouteConfig(), connector_for(mcp))
        >>> bridge.advertised_url
        'http://localhost:3456/__mcp/sse'
    """

    def __init__(
        self,
        config: RouteConfig,
        connector: ProtocolServerConnector,
        registry: SessionRegistry | None = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else SessionRegistry()
        self.primary = PrimaryEntryPoint(config, self.registry, connector)
        self.proxy: ProxyEntryPoint | None = None
        if config.proxy_active:
            self.proxy = ProxyEntryPoint(config, self.registry, connector)
        elif config.proxy.enabled:
            logger.info("Proxy not started: the primary listener is not HTTPS")

    @property
    def listeners(self) -> list[Listener]:
        """Every listener this bridge runs."""
        if self.proxy is None:
            return [self.primary]
        return [self.primary, self.proxy]

    @property
    def advertised_url(self) -> str:
        """URL clients should be pointed at: the proxy's when it runs."""
        if self.proxy is not None:
            return self.proxy.url
        return self.primary.url

    async def serve(self) -> None:
        """Run every listener until one of them stops.

        uvicorn installs its own signal handlers per server, so when one
        server exits the others are told to exit too.
        """
        servers = [listener.build_server() for listener in self.listeners]

        async def run(server: uvicorn.Server) -> None:
            try:
                await server.serve()
            finally:
                for other in servers:
                    other.should_exit = True

        async with anyio.create_task_group() as tg:
            for server in servers:
                tg.start_soon(run, server)

