"""Tests for newline-delimited JSON-RPC framing."""

from __future__ import annotations

import json

from gitnexus_bridge.rpc.framing import (
    JsonRpcMessage,
    LineBuffer,
    notification,
    parse_line,
    request,
)


class TestJsonRpcMessage:
    """Tests for JsonRpcMessage."""

    def test_request_encoding(self) -> None:
        msg = request(2, "tools/call", {"name": "query", "arguments": {"query": "auth"}})
        raw = msg.encode()
        assert raw.endswith(b"\n")
        assert raw.count(b"\n") == 1
        assert json.loads(raw) == {
            "jsonrpc": "2.0",
            "id": 2,
            "method": "tools/call",
            "params": {"name": "query", "arguments": {"query": "auth"}},
        }
        assert msg.is_request()

    def test_notification_has_no_id(self) -> None:
        msg = notification("notifications/initialized")
        assert json.loads(msg.encode()) == {"jsonrpc": "2.0", "method": "notifications/initialized"}
        assert msg.is_notification()
        assert not msg.is_request()

    def test_embedded_newlines_escaped(self) -> None:
        msg = request(3, "tools/call", {"diff": "line1\nline2\n"})
        assert msg.encode().count(b"\n") == 1

    def test_response_from_dict(self) -> None:
        msg = JsonRpcMessage.from_dict({"jsonrpc": "2.0", "id": 5, "result": {"content": []}})
        assert msg.is_response()
        assert msg.id == 5
        assert msg.result == {"content": []}
        assert msg.error is None

    def test_error_from_dict(self) -> None:
        msg = JsonRpcMessage.from_dict({"id": 6, "error": {"code": -1, "message": "x"}})
        assert msg.is_response()
        assert msg.error == {"code": -1, "message": "x"}

    def test_null_result_is_response(self) -> None:
        msg = JsonRpcMessage.from_dict({"jsonrpc": "2.0", "id": 7, "result": None})
        assert msg.is_response()
        assert not msg.is_notification()


class TestLineBuffer:
    """Tests for LineBuffer."""

    def test_single_complete_line(self) -> None:
        buffer = LineBuffer()
        messages = buffer.feed(b'{"id":2,"result":{}}\n')
        assert [m.id for m in messages] == [2]
        assert buffer.pending == b""

    def test_partial_line_held(self) -> None:
        buffer = LineBuffer()
        assert buffer.feed(b'{"id":2,"res') == []
        assert buffer.pending == b'{"id":2,"res'
        messages = buffer.feed(b'ult":{}}\n')
        assert [m.id for m in messages] == [2]

    def test_multiple_lines_in_one_chunk(self) -> None:
        buffer = LineBuffer()
        messages = buffer.feed(b'{"id":2,"result":1}\n{"id":3,"result":2}\n{"id":4')
        assert [m.id for m in messages] == [2, 3]
        assert buffer.pending == b'{"id":4'

    def test_malformed_lines_dropped(self) -> None:
        buffer = LineBuffer()
        messages = buffer.feed(b'not json\n[1,2]\n\n   \n"str"\n{"id":7,"result":null,"error":{"code":1}}\n')
        assert [m.id for m in messages] == [7]

    def test_split_multibyte_character(self) -> None:
        buffer = LineBuffer()
        raw = json.dumps({"id": 2, "result": "café"}, ensure_ascii=False).encode("utf-8")
        cut = raw.index(b"\xc3") + 1
        assert buffer.feed(raw[:cut]) == []
        messages = buffer.feed(raw[cut:] + b"\n")
        assert messages[0].result == "café"

    def test_parse_line(self) -> None:
        assert parse_line(b"") is None
        assert parse_line(b"{bad") is None
        assert parse_line(b"\xff\xfe") is None
        msg = parse_line(b'{"method":"notifications/progress"}')
        assert msg is not None
        assert msg.is_notification()
