"""HTTP-маршруты REST-прокси."""

from mcp_rest_proxy.api.routes import configure_routes, router

__all__ = ["configure_routes", "router"]
