"""Pydantic-модели для JSON-RPC сообщений, отправляемых MCP-серверам."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class JsonRpcNotification(BaseModel):
    """JSON-RPC 2.0 уведомление: без `id`, ответ не ожидается."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump()


class JsonRpcRequest(JsonRpcNotification):
    """Стандартный JSON-RPC 2.0 запрос."""

    id: int


class JsonRpcErrorObj(BaseModel):
    """Структура ошибки JSON-RPC 2.0.

    `code` необязателен: не все MCP-серверы строго следуют спецификации.
    """

    code: Optional[int] = None
    message: str = "Unknown MCP error"
    data: Optional[Any] = None


def is_json_rpc_envelope(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("jsonrpc") == "2.0"


__all__ = [
    "JsonRpcErrorObj",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "is_json_rpc_envelope",
]
