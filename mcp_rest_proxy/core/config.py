"""Глобальные константы и настройки MCP REST прокси."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger("mcp_rest_proxy.core.config")

MCP_PROTOCOL_VERSION = "2025-06-18"
CLIENT_INFO: Dict[str, str] = {
    "name": "mcp-rest-proxy",
    "version": os.getenv("APP_VERSION", "0.1.0"),
}

SESSION_HEADER = "Mcp-Session-Id"
DEFAULT_CONFIG_FILE = "mcp.servers.json"

# Уровни, которые понимают и logging, и uvicorn.
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(slots=True)
class GatewaySettings:
    """Настройки процесса, получаемые из окружения."""

    host: str = "0.0.0.0"
    port: int = 8080
    servers_config: Path = Path(DEFAULT_CONFIG_FILE)
    upstream_timeout: Optional[float] = None
    debug_headers: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "GatewaySettings":
        port = 8080
        port_raw = os.getenv("PORT")
        if port_raw:
            try:
                port = int(port_raw)
            except ValueError:
                logger.warning("Некорректное значение PORT=%r, используем 8080", port_raw)

        # Без значения таймаут не ограничивается: клиент сам его не выдумывает.
        upstream_timeout: Optional[float] = None
        timeout_raw = os.getenv("MCP_UPSTREAM_TIMEOUT")
        if timeout_raw:
            try:
                upstream_timeout = max(0.0, float(timeout_raw)) or None
            except ValueError:
                logger.warning("Некорректное значение MCP_UPSTREAM_TIMEOUT=%r, таймаут не задан", timeout_raw)

        log_level = "INFO"
        level_raw = os.getenv("LOG_LEVEL")
        if level_raw:
            level = level_raw.strip().upper()
            level = _LOG_LEVEL_ALIASES.get(level, level)
            if level in LOG_LEVELS:
                log_level = level
            else:
                logger.warning("Некорректное значение LOG_LEVEL=%r, используем INFO", level_raw)

        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            servers_config=Path(os.getenv("MCP_SERVERS_CONFIG", DEFAULT_CONFIG_FILE)),
            upstream_timeout=upstream_timeout,
            debug_headers=_get_bool(os.getenv("MCP_DEBUG_HEADERS")),
            log_level=log_level,
        )


__all__ = [
    "CLIENT_INFO",
    "DEFAULT_CONFIG_FILE",
    "GatewaySettings",
    "LOG_LEVELS",
    "MCP_PROTOCOL_VERSION",
    "SESSION_HEADER",
]
