"""Свёртка потока Server-Sent Events в один JSON-RPC результат.

MCP-сервер может отправить несколько событий до финального ответа
(прогресс, keep-alive, комментарии). Нас интересует последний `result`,
а любой `error` прерывает чтение сразу.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, List, Optional

from mcp_rest_proxy.core.errors import ProtocolError, TransportError
from mcp_rest_proxy.models.json_rpc import is_json_rpc_envelope

logger = logging.getLogger("mcp_rest_proxy.services.sse")

_DATA_PREFIX = "data:"
_MISSING = object()


class SseAggregator:
    """Инкрементальная свёртка SSE: `feed()` по кускам, затем `finish()`.

    `status_code` — HTTP-статус ответа; попадает в `TransportError`, если
    поток закончился без результата (например, 401 с пустым event-stream).
    """

    def __init__(self, *, method: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self._method = method
        self._status_code = status_code
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        # Куски незавершённой строки; склеиваются только при появлении "\n".
        self._pending: List[str] = []
        self._result: Any = _MISSING
        self.events_seen = 0

    @property
    def has_result(self) -> bool:
        return self._result is not _MISSING

    def feed(self, chunk: bytes) -> None:
        """Добавить очередной кусок байтов. Бросает `ProtocolError` на событии с `error`."""
        self._consume(self._decoder.decode(chunk))

    def finish(self) -> Any:
        """Завершить поток и вернуть последний сохранённый `result`."""
        self._consume(self._decoder.decode(b"", final=True))
        tail = "".join(self._pending)
        self._pending = []
        if tail:
            self._handle_line(tail)
        if not self.has_result:
            raise TransportError(
                "No data received from SSE stream",
                status_code=self._status_code,
                method=self._method,
            )
        return self._result

    def _consume(self, text: str) -> None:
        if "\n" not in text:
            if text:
                self._pending.append(text)
            return
        lines = text.split("\n")
        self._pending.append(lines[0])
        lines[0] = "".join(self._pending)
        # Последний элемент — незавершённая строка, ждём продолжения.
        tail = lines.pop()
        self._pending = [tail] if tail else []
        for line in lines:
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.startswith(_DATA_PREFIX):
            return
        data = line[len(_DATA_PREFIX) :].strip()
        if not data:
            return
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON SSE data line: %.80s", data)
            return
        if not is_json_rpc_envelope(payload):
            return

        self.events_seen += 1
        if payload.get("error") is not None:
            raise ProtocolError.from_error_member(payload["error"], method=self._method)
        if "result" in payload:
            # Явный null тоже считается результатом.
            self._result = payload["result"]


async def aggregate_sse(
    chunks: AsyncIterable[bytes],
    *,
    method: Optional[str] = None,
    status_code: Optional[int] = None,
) -> Any:
    """Читать поток по кускам до конца или до первой ошибки.

    Отмена задачи срабатывает на каждом `await` между чтениями.
    """
    aggregator = SseAggregator(method=method, status_code=status_code)
    async for chunk in chunks:
        aggregator.feed(chunk)
    result = aggregator.finish()
    logger.debug("SSE stream aggregated (%d JSON-RPC event(s))", aggregator.events_seen)
    return result


__all__ = ["SseAggregator", "aggregate_sse"]
