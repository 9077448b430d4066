"""mcp-sse-bridge — serve an MCP server to many clients over SSE."""

__version__ = "0.1.0"
