# mcp_rest_proxy/main.py
"""Точка входа FastAPI: REST-прокси к удалённым MCP-серверам (JSON-RPC over HTTP/SSE)."""
from __future__ import annotations

import logging
import sys
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_rest_proxy import __version__
from mcp_rest_proxy.api import configure_routes, router as api_router
from mcp_rest_proxy.core.config import GatewaySettings
from mcp_rest_proxy.core.errors import InvalidConfigError
from mcp_rest_proxy.core.servers import ServerRegistry

logger = logging.getLogger("mcp_rest_proxy")


def _configure_logging(level: str) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=getattr(logging, level, logging.INFO))


def create_app(
    registry: ServerRegistry,
    settings: Optional[GatewaySettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or GatewaySettings()
    app = FastAPI(title="MCP REST Proxy", version=__version__)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Not found",
                    "message": f"Route {request.method} {request.url.path} does not exist",
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    configure_routes(registry=registry, settings=settings, transport=transport)
    app.include_router(api_router)
    return app


def main() -> None:
    settings = GatewaySettings.from_env()
    _configure_logging(settings.log_level)

    try:
        registry = ServerRegistry.from_file(settings.servers_config)
    except InvalidConfigError as exc:
        logger.error("Failed to load server configuration: %s", exc.message)
        sys.exit(1)

    app = create_app(registry, settings)
    logger.info("MCP REST proxy running on http://%s:%d", settings.host, settings.port)
    logger.info("Available endpoints:")
    logger.info("  GET  /api/list-servers")
    logger.info("  POST /api/mcp/{server_name}/initialize")
    logger.info("  GET  /api/mcp/{server_name}/tools?init=true|false (default: false)")
    logger.info("  POST /api/mcp/{server_name}/tools/{tool_name}/execute?init=true|false (default: false)")
    logger.info("Health check: GET /health")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":  # pragma: no cover
    main()
