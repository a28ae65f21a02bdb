"""Загрузка и разрешение статической конфигурации MCP-серверов."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from mcp_rest_proxy.core.errors import InvalidConfigError, NotFoundError

logger = logging.getLogger("mcp_rest_proxy.core.servers")


class ServerEndpoint(BaseModel):
    """Адрес и статические заголовки одного MCP-сервера. Неизменяем после загрузки."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    type: Literal["http"] = "http"


def _expand_headers(raw: Any) -> Dict[str, str]:
    # Значения вида "Bearer ${TOKEN}" подставляются из окружения.
    if not isinstance(raw, dict):
        return {}
    return {str(key): os.path.expandvars(str(value)) for key, value in raw.items()}


def load_server_config(path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """Читает `mcp.servers.json` и возвращает словарь `mcpServers`."""
    config_path = Path(path)
    try:
        config_data = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise InvalidConfigError(
            f"Configuration file not found: {config_path}. Please create {config_path.name}."
        ) from exc

    try:
        config = json.loads(config_data)
    except json.JSONDecodeError as exc:
        raise InvalidConfigError(f"Failed to load config: {exc}") from exc

    servers = config.get("mcpServers") if isinstance(config, dict) else None
    if not isinstance(servers, dict):
        raise InvalidConfigError("Invalid config format: mcpServers object not found")
    return servers


class ServerRegistry:
    """Отображение имя сервера → `ServerEndpoint`, только для чтения."""

    def __init__(self, servers: Dict[str, Dict[str, Any]]) -> None:
        self._servers: Dict[str, Dict[str, Any]] = {
            name: dict(entry) if isinstance(entry, dict) else {} for name, entry in servers.items()
        }

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ServerRegistry":
        registry = cls(load_server_config(path))
        logger.info("Loaded %d MCP server(s) from %s", len(registry), path)
        return registry

    def __len__(self) -> int:
        return len(self._servers)

    def resolve(self, name: str) -> ServerEndpoint:
        entry = self._servers.get(name)
        if entry is None:
            raise NotFoundError(f"Server '{name}' not found in configuration")
        if entry.get("type") != "http":
            raise InvalidConfigError(f"Server '{name}' is not an HTTP server")
        url = entry.get("url")
        if not isinstance(url, str) or not url.strip():
            raise InvalidConfigError(f"Server '{name}' missing URL configuration")
        return ServerEndpoint(name=name, url=url.strip(), headers=_expand_headers(entry.get("headers")))

    def list_servers(self) -> List[Dict[str, Any]]:
        return [
            {"name": name, "url": entry.get("url"), "type": entry.get("type")}
            for name, entry in self._servers.items()
        ]


__all__ = ["ServerEndpoint", "ServerRegistry", "load_server_config"]
