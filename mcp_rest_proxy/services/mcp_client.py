"""Клиент MCP поверх HTTP: JSON-RPC запросы, handshake и разбор JSON/SSE ответов."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from mcp_rest_proxy.core.config import CLIENT_INFO, MCP_PROTOCOL_VERSION, SESSION_HEADER
from mcp_rest_proxy.core.errors import GatewayError, ProtocolError, TransportError
from mcp_rest_proxy.core.servers import ServerEndpoint
from mcp_rest_proxy.core.session import ProtocolSession, short_session_id
from mcp_rest_proxy.models.json_rpc import JsonRpcNotification, JsonRpcRequest
from mcp_rest_proxy.services.sse import aggregate_sse

logger = logging.getLogger("mcp_rest_proxy.services.mcp_client")

_EVENT_STREAM = "text/event-stream"
_FIXED_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}


@dataclass(slots=True)
class InitializeResult:
    """Результат `initialize`: тело ответа и session id (если сервер его выдал)."""

    result: Any
    session_id: Optional[str] = None


class McpClient:
    """JSON-RPC клиент одной логической MCP-сессии.

    Экземпляр создаётся на один входящий запрос и выбрасывается после него.
    Порядок вызовов не навязывается: `list_tools`/`call_tool` можно звать и без
    `initialize`, если сервер не требует handshake.
    """

    def __init__(
        self,
        endpoint: ServerEndpoint,
        session: Optional[ProtocolSession] = None,
        *,
        session_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        debug_headers: bool = False,
    ) -> None:
        self._endpoint = endpoint
        self._session = session if session is not None else ProtocolSession(session_id=session_id)
        self._extra_headers = dict(extra_headers or {})
        self._debug_headers = debug_headers
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "McpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def endpoint(self) -> ServerEndpoint:
        return self._endpoint

    @property
    def session(self) -> ProtocolSession:
        return self._session

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id

    # --- MCP методы ---

    async def initialize(self) -> InitializeResult:
        """Handshake: `initialize`, захват session id, затем `notifications/initialized`."""
        logger.info("[MCP] Initializing session with %s", self._endpoint.url)
        params = {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": dict(CLIENT_INFO),
        }
        result = await self._request("initialize", params, capture_session=True)

        await self.send_notification("notifications/initialized")
        logger.info("[MCP] Initialize successful (session=%s)", short_session_id(self.session_id))
        return InitializeResult(result=result, session_id=self.session_id)

    async def list_tools(self, cursor: Optional[str] = None) -> Any:
        params: Dict[str, Any] = {"cursor": cursor} if cursor else {}
        return await self._request("tools/list", params)

    async def call_tool(self, name: str, arguments: Any) -> Any:
        # `isError` внутри result — это полезная нагрузка инструмента, а не ошибка протокола.
        return await self._request("tools/call", {"name": name, "arguments": arguments})

    async def send_notification(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Отправить уведомление без ожидания ответа. Ошибки только логируются."""
        notification = JsonRpcNotification(method=method, params=params or {})
        try:
            # Тело ответа не читаем: сервер может держать event-stream открытым.
            async with self._client.stream(
                "POST",
                self._endpoint.url,
                json=notification.to_payload(),
                headers=self._build_headers(),
            ) as response:
                logger.debug("[MCP] Notification %s -> HTTP %s", method, response.status_code)
        except httpx.HTTPError as exc:
            logger.warning("[MCP] Notification %s failed: %s", method, exc)

    # --- внутренние методы ---

    def _build_headers(self) -> httpx.Headers:
        # Заголовки вызывающего < фиксированные < заголовки из конфигурации.
        headers = httpx.Headers(self._extra_headers)
        headers.update(_FIXED_HEADERS)
        headers.update(self._endpoint.headers)
        if self._session.session_id:
            headers[SESSION_HEADER] = self._session.session_id
        return headers

    async def _request(self, method: str, params: Dict[str, Any], *, capture_session: bool = False) -> Any:
        request = JsonRpcRequest(id=self._session.allocate_id(), method=method, params=params)
        headers = self._build_headers()

        logger.info("[MCP] Sending %s (id=%s) to %s", method, request.id, self._endpoint.url)
        if self._debug_headers:
            logger.debug("[MCP] Headers: %s", dict(headers))
        if self._session.session_id:
            logger.info("[MCP] Using session ID: %s", short_session_id(self._session.session_id))

        try:
            async with self._client.stream(
                "POST",
                self._endpoint.url,
                json=request.to_payload(),
                headers=headers,
            ) as response:
                if capture_session:
                    self._capture_session(response)
                result = await self._read_result(response, method)
        except GatewayError as exc:
            raise exc.with_method(method)
        except httpx.HTTPError as exc:
            raise TransportError(f"MCP request failed: {exc}", method=method) from exc

        logger.info("[MCP] %s successful", method)
        return result

    def _capture_session(self, response: httpx.Response) -> None:
        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self._session.session_id = session_id
            logger.info("[MCP] Received session ID: %s", short_session_id(session_id))
        else:
            logger.info("[MCP] No session ID returned by server")

    async def _read_result(self, response: httpx.Response, method: str) -> Any:
        content_type = (response.headers.get("content-type") or "").lower()
        if _EVENT_STREAM in content_type:
            logger.info("[MCP] Received SSE response")
            return await aggregate_sse(response.aiter_bytes(), method=method, status_code=response.status_code)

        await response.aread()
        if not response.is_success:
            body = response.text
            logger.error("[MCP] HTTP %s: %s", response.status_code, response.reason_phrase)
            if body:
                logger.error("[MCP] Error response: %.500s", body)
            raise TransportError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                body=body,
                method=method,
            )

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TransportError(
                f"Invalid JSON response: {exc}",
                status_code=response.status_code,
                body=response.text,
                method=method,
            ) from exc

        if not isinstance(payload, dict):
            raise TransportError(
                "Unexpected JSON-RPC response shape",
                status_code=response.status_code,
                body=response.text,
                method=method,
            )
        if payload.get("error") is not None:
            logger.error("[MCP] JSON-RPC error: %s", payload["error"])
            raise ProtocolError.from_error_member(payload["error"], method=method)
        return payload.get("result")


__all__ = ["InitializeResult", "McpClient", "ProtocolSession"]
