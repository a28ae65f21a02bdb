"""Состояние одной MCP-сессии: захваченный session id и счётчик запросов."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class ProtocolSession:
    """Принадлежит ровно одному клиенту, между клиентами не разделяется."""

    session_id: Optional[str] = None
    next_request_id: int = 1

    def allocate_id(self) -> int:
        request_id = self.next_request_id
        self.next_request_id += 1
        return request_id


def short_session_id(session_id: Optional[str]) -> str:
    # В логи попадает только префикс идентификатора.
    if not session_id:
        return "-"
    return f"{session_id[:20]}..." if len(session_id) > 20 else session_id


__all__ = ["ProtocolSession", "short_session_id"]
