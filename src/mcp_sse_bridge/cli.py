"""CLI entry point for mcp-sse-bridge."""

from __future__ import annotations

import logging

import anyio
import click
from pydantic import ValidationError

from mcp_sse_bridge.connector import load_connector
from mcp_sse_bridge.entrypoints import Bridge
from mcp_sse_bridge.models import (
    DEFAULT_BASE_PATH,
    DEFAULT_PORT,
    DEFAULT_PROXY_PORT,
    ProxyConfig,
    RouteConfig,
)

LOG_LEVELS = ["debug", "info", "warning", "error"]


@click.group()
@click.version_option(package_name="mcp-sse-bridge")
def main() -> None:
    """Serve an MCP server to many clients over SSE."""


@main.command()
@click.option(
    "--server",
    "server_spec",
    type=str,
    required=True,
    help="MCP server as module:attribute (server object or factory).",
)
@click.option("--base-path", type=str, default=DEFAULT_BASE_PATH, help="Route prefix.")
@click.option("--host", type=str, default="localhost", help="Primary listener host.")
@click.option("--port", type=int, default=DEFAULT_PORT, help="Primary listener port.")
@click.option(
    "--scheme",
    type=click.Choice(["http", "https"], case_sensitive=False),
    default=None,
    help="Advertised scheme (derived from TLS options by default).",
)
@click.option("--ssl-certfile", type=click.Path(exists=True), help="TLS certificate.")
@click.option("--ssl-keyfile", type=click.Path(exists=True), help="TLS private key.")
@click.option(
    "--proxy/--no-proxy",
    default=False,
    help="Also serve plain HTTP on loopback when the primary listener is HTTPS.",
)
@click.option("--proxy-port", type=int, default=DEFAULT_PROXY_PORT, help="Proxy listener port.")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    help="Logging level.",
)
@click.option("--print-url/--no-print-url", default=True, help="Print the SSE URL at startup.")
def serve(
    server_spec: str,
    base_path: str,
    host: str,
    port: int,
    scheme: str | None,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
    proxy: bool,
    proxy_port: int,
    log_level: str,
    print_url: bool,
) -> None:
    """Start the SSE listener(s)."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = RouteConfig(
            base_path=base_path,
            host=host,
            port=port,
            scheme=scheme.lower() if scheme else None,
            ssl_certfile=ssl_certfile,
            ssl_keyfile=ssl_keyfile,
            proxy=ProxyConfig(enabled=proxy, port=proxy_port),
        )
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        raise click.UsageError(f"Invalid configuration: {messages}") from exc

    try:
        connector = load_connector(server_spec)
    except (ImportError, ValueError, TypeError) as exc:
        raise click.BadParameter(str(exc), param_hint="--server") from exc

    bridge = Bridge(config, connector)
    if print_url:
        click.echo(f"MCP server is running at {bridge.advertised_url}")

    anyio.run(bridge.serve)
