"""Tests for the stdio JSON-RPC client.

Most tests drive a real subprocess (tests/fake_backend.py) so framing,
handshake, and id correlation are exercised end to end.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from gitnexus_bridge.rpc import (
    BackendClosedError,
    ConnectionState,
    GraphRpcClient,
    JsonRpcMessage,
    tool_result_text,
)
from gitnexus_bridge.rpc.client import FIRST_CALL_ID, INITIALIZE_ID

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX subprocess semantics")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def spawn_log(tmp_path: Path) -> Path:
    return tmp_path / "spawns.log"


@pytest.fixture
async def client(fake_backend_cmd, spawn_log):
    c = GraphRpcClient(fake_backend_cmd, env={"FAKE_BACKEND_LOG": str(spawn_log)})
    yield c
    await c.close()


def spawn_count(log: Path) -> int:
    if not log.exists():
        return 0
    return sum(1 for line in log.read_text().splitlines() if line == "mcp")


async def wait_for_pending(client: GraphRpcClient, count: int, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while client.pending_count < count:
        if loop.time() > deadline:
            raise AssertionError(f"never reached {count} pending calls")
        await asyncio.sleep(0.01)


# =============================================================================
# Handshake and lifecycle
# =============================================================================


class TestLifecycle:
    """Tests for lazy start, handshake, and restart."""

    @pytest.mark.asyncio
    async def test_starts_lazily(self, client, spawn_log, tmp_path):
        assert client.state is ConnectionState.UNSTARTED
        assert spawn_count(spawn_log) == 0

        result = await client.call_tool("echo", {"query": "auth"}, str(tmp_path))

        assert client.state is ConnectionState.READY
        assert result.text == '[GitNexus]\n{"query": "auth"}'
        assert spawn_count(spawn_log) == 1

    @pytest.mark.asyncio
    async def test_initialized_notification_sent(self, client, tmp_path):
        result = await client.call_tool("initialized", {}, str(tmp_path))
        assert result.text == "[GitNexus]\nyes"

    @pytest.mark.asyncio
    async def test_spawned_in_cwd(self, client, tmp_path):
        result = await client.call_tool("cwd", {}, str(tmp_path))
        assert Path(result.text.split("\n", 1)[1]).resolve() == tmp_path.resolve()
        assert client.cwd == str(tmp_path)

    @pytest.mark.asyncio
    async def test_reuses_process(self, client, spawn_log, tmp_path):
        for i in range(3):
            await client.call_tool("echo", {"n": i}, str(tmp_path))
        assert spawn_count(spawn_log) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_startup(self, client, spawn_log, tmp_path):
        results = await asyncio.gather(
            *(client.call_tool("echo", {"n": i}, str(tmp_path)) for i in range(5))
        )
        assert spawn_count(spawn_log) == 1
        assert [r.text for r in results] == [f'[GitNexus]\n{{"n": {i}}}' for i in range(5)]

    @pytest.mark.asyncio
    async def test_stop_then_restart(self, client, spawn_log, tmp_path):
        await client.call_tool("echo", {}, str(tmp_path))
        client.stop()
        assert client.state is ConnectionState.CLOSED

        result = await client.call_tool("echo", {"again": True}, str(tmp_path))
        assert result.text == '[GitNexus]\n{"again": true}'
        assert client.state is ConnectionState.READY
        assert spawn_count(spawn_log) == 2

    @pytest.mark.asyncio
    async def test_stop_before_start_is_noop(self):
        client = GraphRpcClient(["gitnexus"])
        client.stop()
        assert client.state is ConnectionState.UNSTARTED


# =============================================================================
# Correlation
# =============================================================================


class TestCorrelation:
    """Tests for request/response matching by id."""

    @pytest.mark.asyncio
    async def test_out_of_order_responses(self, client, tmp_path):
        cwd = str(tmp_path)
        first = asyncio.ensure_future(client.call_tool("defer", {"tag": "one"}, cwd))
        await wait_for_pending(client, 1)
        second = asyncio.ensure_future(client.call_tool("defer", {"tag": "two"}, cwd))
        await wait_for_pending(client, 2)

        flushed = await client.call_tool("flush", {}, cwd)

        assert flushed.text == "[GitNexus]\nflushed"
        assert (await first).text == "[GitNexus]\ndeferred one"
        assert (await second).text == "[GitNexus]\ndeferred two"

    @pytest.mark.asyncio
    async def test_unknown_id_ignored(self, client, tmp_path):
        result = await client.call_tool("unknown_id", {}, str(tmp_path))
        assert result.text == "[GitNexus]\nreal"
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_malformed_lines_ignored(self, client, tmp_path):
        result = await client.call_tool("garbage", {}, str(tmp_path))
        assert result.text == "[GitNexus]\nafter garbage"
        assert client.state is ConnectionState.READY

    @pytest.mark.asyncio
    async def test_dispatch_resolves_only_matching_id(self):
        client = GraphRpcClient(["gitnexus"])
        a = client._register(FIRST_CALL_ID)
        b = client._register(FIRST_CALL_ID + 1)

        client._dispatch(JsonRpcMessage(id=FIRST_CALL_ID + 1, result={"content": []}))
        assert b.done()
        assert not a.done()

        client._dispatch(JsonRpcMessage(id=999, result={}))
        client._dispatch(JsonRpcMessage(id=True, result={}))
        client._dispatch(JsonRpcMessage(id="2", result={}))
        client._dispatch(JsonRpcMessage(method="notifications/progress"))
        client._dispatch(JsonRpcMessage(id=FIRST_CALL_ID, method="roots/list"))
        assert not a.done()
        assert client.pending_count == 1

        client._dispatch(JsonRpcMessage(id=FIRST_CALL_ID, result={}))
        assert a.done()
        assert client.pending_count == 0

    def test_handshake_id_is_reserved(self):
        assert INITIALIZE_ID == 1
        assert FIRST_CALL_ID == 2


# =============================================================================
# Failure paths
# =============================================================================


class TestFailures:
    """Every failure ends in an empty result, never an exception."""

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        client = GraphRpcClient([str(tmp_path / "no-such-gitnexus")])
        result = await client.call_tool("query", {"query": "auth"}, str(tmp_path))
        assert result.text == ""
        assert result.status == "error"
        assert client.state is ConnectionState.ERRORED

    @pytest.mark.asyncio
    async def test_exit_during_handshake(self, fake_backend_cmd, tmp_path):
        client = GraphRpcClient(fake_backend_cmd, env={"FAKE_MCP_INIT": "exit"})
        try:
            result = await client.call_tool("echo", {}, str(tmp_path))
        finally:
            await client.close()
        assert result.text == ""
        assert client.state in (ConnectionState.ERRORED, ConnectionState.CLOSED)

    @pytest.mark.asyncio
    async def test_retry_after_failed_start(self, fake_backend_cmd, tmp_path):
        client = GraphRpcClient([str(tmp_path / "missing")])
        assert (await client.call_tool("echo", {}, str(tmp_path))).text == ""

        client.command = fake_backend_cmd
        try:
            result = await client.call_tool("echo", {"ok": 1}, str(tmp_path))
        finally:
            await client.close()
        assert result.text == '[GitNexus]\n{"ok": 1}'

    @pytest.mark.asyncio
    async def test_exit_mid_call_fails_pending(self, client, tmp_path):
        cwd = str(tmp_path)
        deferred = asyncio.ensure_future(client.call_tool("defer", {"tag": "x"}, cwd))
        await wait_for_pending(client, 1)

        result = await client.call_tool("exit", {}, cwd)

        assert result.text == ""
        assert (await deferred).text == ""
        assert client.pending_count == 0
        assert client.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_respawns_after_exit(self, client, spawn_log, tmp_path):
        cwd = str(tmp_path)
        await client.call_tool("exit", {}, cwd)
        result = await client.call_tool("echo", {}, cwd)
        assert result.text == "[GitNexus]\n{}"
        assert spawn_count(spawn_log) == 2

    @pytest.mark.asyncio
    async def test_stop_fails_pending(self, client, tmp_path):
        pending = asyncio.ensure_future(client.call_tool("defer", {"tag": "x"}, str(tmp_path)))
        await wait_for_pending(client, 1)

        client.stop()

        result = await asyncio.wait_for(pending, timeout=5.0)
        assert result.text == ""
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_error_response(self, client, tmp_path):
        result = await client.call_tool("error", {}, str(tmp_path))
        assert result.text == ""
        assert "boom" in (result.detail or "")

    @pytest.mark.asyncio
    async def test_error_flagged_result(self, client, tmp_path):
        assert (await client.call_tool("flagged", {}, str(tmp_path))).text == ""

    @pytest.mark.asyncio
    async def test_empty_content(self, client, tmp_path):
        assert (await client.call_tool("empty", {}, str(tmp_path))).text == ""

    @pytest.mark.asyncio
    async def test_mixed_content(self, client, tmp_path):
        result = await client.call_tool("mixed", {}, str(tmp_path))
        assert result.text == "[GitNexus]\nfirst\nsecond"

    @pytest.mark.asyncio
    async def test_fail_pending_uses_backend_closed_error(self):
        client = GraphRpcClient(["gitnexus"])
        future = client._register(FIRST_CALL_ID)
        client._fail_pending("gone")
        with pytest.raises(BackendClosedError, match="gone"):
            await future


# =============================================================================
# Result interpretation
# =============================================================================


class TestToolResultText:
    """Tests for tool_result_text."""

    def test_text_blocks_joined(self):
        msg = JsonRpcMessage(
            id=2,
            result={"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]},
        )
        result = tool_result_text(msg)
        assert result.text == "[GitNexus]\na\nb"
        assert result.status == "ok"

    def test_truncates_body(self):
        msg = JsonRpcMessage(id=2, result={"content": [{"type": "text", "text": "y" * 50}]})
        result = tool_result_text(msg, limit=10)
        assert result.text == "[GitNexus]\n" + "y" * 10
        assert result.truncated is True

    def test_top_level_error(self):
        msg = JsonRpcMessage(id=2, error={"code": -32601, "message": "no such tool"})
        result = tool_result_text(msg)
        assert result.text == ""
        assert result.status == "error"

    def test_is_error(self):
        msg = JsonRpcMessage(
            id=2, result={"content": [{"type": "text", "text": "x"}], "isError": True}
        )
        assert tool_result_text(msg).text == ""

    def test_non_dict_result(self):
        assert tool_result_text(JsonRpcMessage(id=2, result=[1, 2])).text == ""

    def test_missing_content(self):
        assert tool_result_text(JsonRpcMessage(id=2, result={})).text == ""

    def test_only_non_text_blocks(self):
        msg = JsonRpcMessage(id=2, result={"content": [{"type": "image", "data": "AA"}]})
        assert tool_result_text(msg).text == ""

    def test_skips_error_blocks(self):
        msg = JsonRpcMessage(
            id=2,
            result={
                "content": [
                    {"type": "text", "text": "kept"},
                    {"type": "text", "text": "dropped", "isError": True},
                ]
            },
        )
        assert tool_result_text(msg).text == "[GitNexus]\nkept"
