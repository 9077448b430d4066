"""Core data models for mcp-sse-bridge.

Defines the session record kept in the registry and the immutable
route configuration shared by both network entry points.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from mcp_sse_bridge.transport import SseSessionTransport

DEFAULT_BASE_PATH = "/__mcp"
DEFAULT_PORT = 3456
DEFAULT_PROXY_PORT = 3457

# The proxy listener never binds to a public interface
PROXY_BIND_HOST = "127.0.0.1"
PROXY_ADVERTISED_HOST = "localhost"


class EntryPoint(StrEnum):
    """Network listener that originated a session.

    Attributes:
        PRIMARY: The main (possibly TLS) listener.
        PROXY: The plain-HTTP loopback listener.
    """

    PRIMARY = "primary"
    PROXY = "proxy"


class Scheme(StrEnum):
    """URL scheme of the primary listener.

    Attributes:
        HTTP: Unencrypted listener.
        HTTPS: TLS listener.
    """

    HTTP = "http"
    HTTPS = "https"


@dataclass
class Session:
    """One live SSE connection, addressed by its id.

    Args:
        id: Opaque session id minted by the transport. Unique process-wide.
        transport: The open SSE transport backing this session.
        created_via: Entry point the stream was opened through (informational).
        created_at: When the stream was opened.
    """

    id: str
    transport: SseSessionTransport
    created_via: EntryPoint
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class ProxyConfig(BaseModel):
    """Settings for the plain-HTTP loopback listener."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    port: int = Field(default=DEFAULT_PROXY_PORT, ge=1, le=65535)


class RouteConfig(BaseModel):
    """Immutable routing and listener configuration.

    Args:
        base_path: Prefix for the ``/sse`` and ``/messages`` routes.
        host: Host name the primary listener binds to and advertises.
        port: Primary listener port.
        scheme: Explicit scheme override. Derived from the TLS settings
            when omitted.
        ssl_certfile: Certificate for the primary listener.
        ssl_keyfile: Private key for the primary listener.
        proxy: Loopback proxy settings.

    Example:
        >>> config = RouteConfig(port=5173, proxy=ProxyConfig(enabled=True))
        >>> config.message_path
        '/__mcp/messages'
    """

    model_config = ConfigDict(frozen=True)

    base_path: str = DEFAULT_BASE_PATH
    host: str = "localhost"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    scheme: Scheme | None = None
    ssl_certfile: str | None = None
    ssl_keyfile: str | None = None
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("base_path must start with '/'")
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_listeners(self) -> RouteConfig:
        if bool(self.ssl_certfile) != bool(self.ssl_keyfile):
            raise ValueError("ssl_certfile and ssl_keyfile must be given together")
        if self.proxy.enabled and self.proxy.port == self.port:
            raise ValueError("proxy port must differ from the primary port")
        return self

    @property
    def sse_path(self) -> str:
        """Path of the streaming route."""
        return f"{self.base_path}/sse"

    @property
    def message_path(self) -> str:
        """Path of the message-submission route."""
        return f"{self.base_path}/messages"

    @property
    def resolved_scheme(self) -> Scheme:
        """Scheme of the primary listener, explicit or derived from TLS settings."""
        if self.scheme is not None:
            return self.scheme
        return Scheme.HTTPS if self.ssl_certfile else Scheme.HTTP

    @property
    def proxy_active(self) -> bool:
        """Whether the loopback proxy listener should run.

        The proxy only exists to sidestep the primary listener's
        certificate, so it stays off for plain-HTTP primaries.
        """
        return self.proxy.enabled and self.resolved_scheme == Scheme.HTTPS

    @property
    def primary_url(self) -> str:
        """Externally reachable SSE URL of the primary listener."""
        return f"{self.resolved_scheme}://{self.host}:{self.port}{self.sse_path}"

    @property
    def proxy_url(self) -> str:
        """Externally reachable SSE URL of the loopback proxy."""
        return f"http://{PROXY_ADVERTISED_HOST}:{self.proxy.port}{self.sse_path}"
