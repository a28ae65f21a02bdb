from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from mcp_rest_proxy.core.servers import ServerEndpoint

MCP_URL = "https://mcp.example.test/mcp"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def endpoint() -> ServerEndpoint:
    return ServerEndpoint(name="weather", url=MCP_URL, headers={"Authorization": "Bearer config-token"})


class RecordingUpstream:
    """Фейковый MCP-сервер для httpx.MockTransport: пишет запросы, отвечает по методу."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handlers: Dict[str, Callable[[Dict[str, Any]], httpx.Response]] = {}

    def on(self, method: str, handler: Callable[[Dict[str, Any]], httpx.Response]) -> None:
        self.handlers[method] = handler

    def payloads(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        payload = json.loads(request.content)
        handler = self.handlers.get(payload["method"])
        if handler is None:
            if "id" not in payload:
                return httpx.Response(202)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": payload["id"], "error": {"code": -32601, "message": "Method not found"}},
            )
        return handler(payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def json_result(result: Any, *, headers: Dict[str, str] | None = None) -> Callable[[Dict[str, Any]], httpx.Response]:
    def handler(payload: Dict[str, Any]) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result}, headers=headers)

    return handler


def sse_response(*lines: str, status_code: int = 200, headers: Dict[str, str] | None = None) -> httpx.Response:
    body = "".join(f"{line}\n" for line in lines).encode("utf-8")
    merged = {"content-type": "text/event-stream"}
    merged.update(headers or {})
    return httpx.Response(status_code, headers=merged, content=body)


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()
