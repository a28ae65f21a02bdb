from __future__ import annotations

from typing import AsyncIterator, List

import anyio
import pytest

from mcp_rest_proxy.core.errors import ProtocolError, TransportError
from mcp_rest_proxy.services.sse import SseAggregator, aggregate_sse

STREAM = (
    ": keep-alive\n"
    "event: message\n"
    'data: {"jsonrpc":"2.0","method":"notifications/progress","params":{"progress":1}}\n'
    "data: not json at all\n"
    'data: {"jsonrpc":"2.0","id":2,"result":{"step":"first"}}\n'
    "\n"
    'data: {"unrelated": true, "result": "ignored"}\n'
    'data: {"jsonrpc":"2.0","id":2,"result":{"text":"привет, погода ☀"}}\r\n'
).encode("utf-8")


def _fold(chunks: List[bytes]):
    aggregator = SseAggregator(method="tools/call")
    for chunk in chunks:
        aggregator.feed(chunk)
    return aggregator.finish()


async def _stream(chunks: List[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def test_last_result_wins() -> None:
    assert _fold([STREAM]) == {"text": "привет, погода ☀"}


def test_result_is_independent_of_chunk_boundaries() -> None:
    expected = {"text": "привет, погода ☀"}
    for split_at in range(1, len(STREAM)):
        assert _fold([STREAM[:split_at], STREAM[split_at:]]) == expected
    assert _fold([STREAM[i : i + 1] for i in range(len(STREAM))]) == expected
    assert _fold([STREAM[i : i + 7] for i in range(0, len(STREAM), 7)]) == expected


def test_trailing_line_without_newline_is_processed() -> None:
    assert _fold([b'data: {"jsonrpc":"2.0","id":1,"result":{"ok":true}}']) == {"ok": True}


def test_stream_without_json_rpc_events_is_transport_error() -> None:
    with pytest.raises(TransportError) as exc_info:
        _fold([b": ping\n", b"data: hello\n", b'data: {"result": 1}\n'])
    assert exc_info.value.method == "tools/call"
    assert "No data received" in exc_info.value.message


def test_empty_stream_is_transport_error() -> None:
    with pytest.raises(TransportError):
        _fold([])


def test_error_after_result_overrides_result() -> None:
    chunks = [
        b'data: {"jsonrpc":"2.0","id":2,"result":{"ok":true}}\n',
        b'data: {"jsonrpc":"2.0","id":2,"error":{"message":"boom"}}\n',
    ]
    with pytest.raises(ProtocolError) as exc_info:
        _fold(chunks)
    assert exc_info.value.message == "boom"
    assert exc_info.value.code is None


def test_error_member_keeps_code_and_data() -> None:
    with pytest.raises(ProtocolError) as exc_info:
        _fold([b'data: {"jsonrpc":"2.0","id":3,"error":{"code":-32602,"message":"bad","data":{"field":"x"}}}\n'])
    assert exc_info.value.code == -32602
    assert exc_info.value.data == {"field": "x"}


def test_explicit_null_result_is_retained() -> None:
    aggregator = SseAggregator()
    aggregator.feed(b'data: {"jsonrpc":"2.0","id":1,"result":null}\n')
    assert aggregator.has_result
    assert aggregator.finish() is None


@pytest.mark.anyio
async def test_aggregate_sse_reads_async_chunks() -> None:
    chunks = [STREAM[:10], STREAM[10:95], STREAM[95:]]
    assert await aggregate_sse(_stream(chunks)) == {"text": "привет, погода ☀"}


@pytest.mark.anyio
async def test_aggregate_sse_stops_reading_after_error() -> None:
    consumed: List[int] = []

    async def chunks() -> AsyncIterator[bytes]:
        for index, chunk in enumerate(
            [
                b'data: {"jsonrpc":"2.0","id":1,"error":{"message":"unknown tool"}}\n',
                b'data: {"jsonrpc":"2.0","id":1,"result":{}}\n',
            ]
        ):
            consumed.append(index)
            yield chunk

    with pytest.raises(ProtocolError, match="unknown tool"):
        await aggregate_sse(chunks(), method="tools/call")
    assert consumed == [0]


@pytest.mark.anyio
async def test_cancellation_stops_reading_between_chunks() -> None:
    consumed: List[str] = []

    async def stalled() -> AsyncIterator[bytes]:
        yield b'data: {"jsonrpc":"2.0","id":1,"result":{"partial":true}}\n'
        consumed.append("stalled")
        await anyio.sleep(3600)
        consumed.append("resumed")
        yield b""

    with anyio.move_on_after(0.1) as scope:
        await aggregate_sse(stalled())

    assert scope.cancelled_caught
    assert consumed == ["stalled"]


def test_missing_result_carries_status_code() -> None:
    aggregator = SseAggregator(method="initialize", status_code=403)
    aggregator.feed(b": unauthorized\n")
    with pytest.raises(TransportError) as exc_info:
        aggregator.finish()
    assert exc_info.value.status_code == 403
    assert exc_info.value.is_auth_failure


def test_long_line_split_into_many_chunks() -> None:
    text = "x" * 50_000
    line = ('data: {"jsonrpc":"2.0","id":1,"result":{"text":"' + text + '"}}\n').encode("utf-8")
    chunks = [line[i : i + 16] for i in range(0, len(line), 16)]
    assert _fold(chunks) == {"text": text}
