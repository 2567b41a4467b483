"""Stdio JSON-RPC client for the graph backend's `mcp` mode."""

from gitnexus_bridge.rpc.client import GraphRpcClient, tool_result_text
from gitnexus_bridge.rpc.framing import JsonRpcMessage, LineBuffer
from gitnexus_bridge.rpc.types import BackendClosedError, ConnectionState

__all__ = [
    "BackendClosedError",
    "ConnectionState",
    "GraphRpcClient",
    "JsonRpcMessage",
    "LineBuffer",
    "tool_result_text",
]
