"""REST → MCP (JSON-RPC over HTTP/SSE) прокси."""

__version__ = "0.1.0"
