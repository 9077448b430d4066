"""Minimal FastMCP fixture server for integration tests.

Usage:
    mcp-sse-bridge serve --server echo_server:mcp
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    name="echo-server",
    instructions="A test fixture that echoes its input.",
)


@mcp.tool()
def echo(text: str) -> str:
    """Return the input unchanged.

    Args:
        text: The text to echo.
    """
    return text


@mcp.tool()
def add(a: int, b: int) -> int:
    """Add two integers.

    Args:
        a: First operand.
        b: Second operand.
    """
    return a + b
