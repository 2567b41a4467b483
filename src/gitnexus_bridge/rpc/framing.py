"""Newline-delimited JSON-RPC 2.0 framing.

One complete JSON object per line, each written with a trailing newline.
Incoming bytes are accumulated until a newline completes a line; the
trailing partial segment is held for the next chunk.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from gitnexus_bridge.logging import get_logger

log = get_logger("rpc.framing")

_FIELDS = ("id", "method", "params", "result", "error")


@dataclass
class JsonRpcMessage:
    """One JSON-RPC 2.0 request, notification, or response.

    Absent members are None and are left out of the wire form.
    """

    id: int | str | None = None
    method: str | None = None
    params: dict[str, Any] | None = None
    result: Any = None
    error: dict[str, Any] | None = None
    jsonrpc: str = "2.0"

    def is_request(self) -> bool:
        return self.method is not None and self.id is not None

    def is_notification(self) -> bool:
        return self.method is not None and self.id is None

    def is_response(self) -> bool:
        # result may be null
        return self.method is None and (self.id is not None or self.error is not None)

    def to_dict(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        wire.update((name, getattr(self, name)) for name in _FIELDS if getattr(self, name) is not None)
        return wire

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JsonRpcMessage:
        return cls(jsonrpc=data.get("jsonrpc", "2.0"), **{name: data.get(name) for name in _FIELDS})

    def encode(self) -> bytes:
        """Compact JSON plus the terminating newline. json.dumps escapes embedded newlines."""
        return (json.dumps(self.to_dict(), separators=(",", ":")) + "\n").encode("utf-8")


def request(request_id: int, method: str, params: dict[str, Any] | None = None) -> JsonRpcMessage:
    return JsonRpcMessage(id=request_id, method=method, params=params)


def notification(method: str, params: dict[str, Any] | None = None) -> JsonRpcMessage:
    return JsonRpcMessage(method=method, params=params)


class LineBuffer:
    """Accumulates stream chunks and yields complete JSON-RPC messages.

    Malformed lines are dropped; they never raise.
    """

    def __init__(self) -> None:
        self._pending = b""

    def feed(self, chunk: bytes) -> list[JsonRpcMessage]:
        """Add a chunk and return every message completed by it, in order."""
        data = self._pending + chunk
        *lines, self._pending = data.split(b"\n")

        messages = []
        for line in lines:
            msg = parse_line(line)
            if msg is not None:
                messages.append(msg)
        return messages

    @property
    def pending(self) -> bytes:
        """Bytes of the incomplete trailing line."""
        return self._pending


def parse_line(line: bytes) -> JsonRpcMessage | None:
    """Parse one line; None for blank, non-JSON, or non-object lines."""
    if not line.strip():
        return None
    try:
        data = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        log.debug("Dropping malformed line: %r", line[:200])
        return None
    if not isinstance(data, dict):
        return None
    return JsonRpcMessage.from_dict(data)
