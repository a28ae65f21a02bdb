"""Таксономия ошибок прокси: структурированные исключения вместо разбора текста."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from mcp_rest_proxy.models.json_rpc import JsonRpcErrorObj

_BODY_EXCERPT_LIMIT = 500


class GatewayError(Exception):
    """Базовая ошибка прокси.

    `kind` — короткий ярлык для пользователя, `method` — JSON-RPC метод,
    в рамках которого произошла ошибка (если применимо).
    """

    kind = "Gateway error"

    def __init__(self, message: str, *, method: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.method = method

    def with_method(self, method: str) -> "GatewayError":
        if self.method is None:
            self.method = method
        return self


class NotFoundError(GatewayError):
    """Неизвестное имя сервера или инструмента."""

    kind = "Not found"


class InvalidConfigError(GatewayError):
    """Некорректная статическая конфигурация серверов."""

    kind = "Invalid configuration"


class TransportError(GatewayError):
    """Сетевой сбой, неуспешный HTTP-статус или пустой SSE-поток."""

    kind = "Transport error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        method: Optional[str] = None,
    ) -> None:
        super().__init__(message, method=method)
        self.status_code = status_code
        self.body = body[:_BODY_EXCERPT_LIMIT] if body else None

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in {401, 403}


class ProtocolError(GatewayError):
    """JSON-RPC `error`, вернувшийся от MCP-сервера. Штатный исход, не баг."""

    kind = "Protocol error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        data: Any = None,
        method: Optional[str] = None,
    ) -> None:
        super().__init__(message, method=method)
        self.code = code
        self.data = data

    @classmethod
    def from_error_member(cls, error: Any, *, method: Optional[str] = None) -> "ProtocolError":
        if isinstance(error, dict):
            try:
                parsed = JsonRpcErrorObj.model_validate(error)
            except ValidationError:
                parsed = JsonRpcErrorObj(message=str(error.get("message") or "Unknown MCP error"))
            return cls(parsed.message or "Unknown MCP error", code=parsed.code, data=parsed.data, method=method)
        return cls(str(error) if error else "Unknown MCP error", method=method)


__all__ = [
    "GatewayError",
    "InvalidConfigError",
    "NotFoundError",
    "ProtocolError",
    "TransportError",
]
