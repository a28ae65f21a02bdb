"""FastAPI-маршруты REST-прокси к MCP-серверам."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Body, Header, Query
from fastapi.responses import JSONResponse

from mcp_rest_proxy.core.config import SESSION_HEADER, GatewaySettings
from mcp_rest_proxy.core.errors import GatewayError, NotFoundError, TransportError
from mcp_rest_proxy.core.servers import ServerRegistry
from mcp_rest_proxy.services.mcp_client import McpClient

logger = logging.getLogger("mcp_rest_proxy.api.routes")

router = APIRouter()

_REGISTRY: ServerRegistry = ServerRegistry({})
_SETTINGS: GatewaySettings = GatewaySettings()
_TRANSPORT: Optional[httpx.AsyncBaseTransport] = None


def configure_routes(
    *,
    registry: ServerRegistry,
    settings: GatewaySettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Подключаем реестр серверов и настройки, чтобы избежать циклов импорта."""
    global _REGISTRY, _SETTINGS, _TRANSPORT
    _REGISTRY = registry
    _SETTINGS = settings
    _TRANSPORT = transport


def _create_client(server_name: str, session_id: Optional[str] = None) -> McpClient:
    endpoint = _REGISTRY.resolve(server_name)
    return McpClient(
        endpoint,
        session_id=session_id,
        timeout=_SETTINGS.upstream_timeout,
        transport=_TRANSPORT,
        debug_headers=_SETTINGS.debug_headers,
    )


def _pick_session_id(header_value: Optional[str], query_value: Optional[str]) -> Optional[str]:
    # Заголовок важнее query-параметра.
    return header_value or query_value or None


def _should_initialize(init: Optional[str]) -> bool:
    # Любое значение, кроме "true", означает "без handshake".
    return init == "true"


def _session_headers(session_id: Optional[str]) -> Dict[str, str]:
    return {SESSION_HEADER: session_id} if session_id else {}


def error_response(exc: GatewayError, *, context: str) -> JSONResponse:
    """Перевод таксономии ошибок в HTTP-ответ. Без трейсов, только вид и сообщение."""
    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=404, content={"error": exc.kind, "message": exc.message})
    if isinstance(exc, TransportError) and exc.is_auth_failure:
        return JSONResponse(
            status_code=401,
            content={
                "error": "Authentication failed",
                "message": "Invalid or missing authorization credentials",
            },
        )
    return JSONResponse(status_code=500, content={"error": context, "message": exc.message})


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/api/list-servers")
async def list_servers() -> Dict[str, Any]:
    servers = _REGISTRY.list_servers()
    return {"servers": servers, "count": len(servers)}


@router.post("/api/mcp/{server_name}/initialize")
async def initialize(server_name: str) -> JSONResponse:
    try:
        async with _create_client(server_name) as client:
            init = await client.initialize()
    except GatewayError as exc:
        logger.error("Initialize error for %s: %s", server_name, exc.message)
        return error_response(exc, context="Initialization failed")

    body = dict(init.result) if isinstance(init.result, dict) else {"result": init.result}
    body["sessionId"] = init.session_id
    return JSONResponse(content=body, headers=_session_headers(init.session_id))


@router.get("/api/mcp/{server_name}/tools")
async def list_tools(
    server_name: str,
    cursor: Optional[str] = Query(default=None),
    init: Optional[str] = Query(default=None),
    session_id_query: Optional[str] = Query(default=None, alias="sessionId"),
    session_id_header: Optional[str] = Header(default=None, alias=SESSION_HEADER),
) -> JSONResponse:
    session_id = _pick_session_id(session_id_header, session_id_query)
    try:
        async with _create_client(server_name, session_id) as client:
            if _should_initialize(init):
                await client.initialize()
            result = await client.list_tools(cursor)
            session_id = client.session_id
    except GatewayError as exc:
        logger.error("List tools error for %s: %s", server_name, exc.message)
        return error_response(exc, context="Failed to list tools")

    return JSONResponse(content=result, headers=_session_headers(session_id))


@router.post("/api/mcp/{server_name}/tools/{tool_name}/execute")
async def execute_tool(
    server_name: str,
    tool_name: str,
    arguments: Any = Body(default=None),
    init: Optional[str] = Query(default=None),
    session_id_query: Optional[str] = Query(default=None, alias="sessionId"),
    session_id_header: Optional[str] = Header(default=None, alias=SESSION_HEADER),
) -> JSONResponse:
    session_id = _pick_session_id(session_id_header, session_id_query)
    try:
        async with _create_client(server_name, session_id) as client:
            if _should_initialize(init):
                await client.initialize()
            result = await client.call_tool(tool_name, {} if arguments is None else arguments)
            session_id = client.session_id
    except GatewayError as exc:
        logger.error("Execute tool error for %s/%s: %s", server_name, tool_name, exc.message)
        return error_response(exc, context="Tool execution failed")

    return JSONResponse(content=result, headers=_session_headers(session_id))


__all__ = ["configure_routes", "error_response", "router"]
