"""Stdio JSON-RPC client for `gitnexus mcp`.

Communication is exclusively over the spawned process's stdin/stdout pipe.
The process is started lazily on the first call_tool() and kept alive for
the session. stop() terminates it; the next call_tool() spawns a fresh one,
so a session switch must call stop() to rebind the backend to the new cwd.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from gitnexus_bridge.backend import build_argv, build_env
from gitnexus_bridge.invoker import MAX_OUTPUT_CHARS
from gitnexus_bridge.logging import get_logger
from gitnexus_bridge.result import LookupResult
from gitnexus_bridge.rpc.framing import JsonRpcMessage, LineBuffer, notification, request
from gitnexus_bridge.rpc.types import BackendClosedError, ConnectionState

log = get_logger("rpc.client")

INITIALIZE_ID = 1  # Reserved for the handshake
FIRST_CALL_ID = 2
RESULT_LABEL = "[GitNexus]"

_READ_CHUNK = 64 * 1024

# Errors that mean "no connection this time"; anything else is a bug.
_START_ERRORS = (OSError, ValueError, BackendClosedError)


class GraphRpcClient:
    """Long-lived connection to the backend's JSON-RPC mode.

    Concurrent callers that arrive while the handshake is in flight all await
    the same startup, so at most one process is spawned per connection epoch.
    Every failure path ends in an empty LookupResult rather than an exception.
    """

    def __init__(
        self,
        command: list[str],
        *,
        protocol_version: str = "2024-11-05",
        client_name: str = "gitnexus-bridge",
        client_version: str = "0.1.0",
        env: Mapping[str, str] | None = None,
        max_output_chars: int = MAX_OUTPUT_CHARS,
    ) -> None:
        self.command = list(command)
        self.protocol_version = protocol_version
        self.client_name = client_name
        self.client_version = client_version
        self.max_output_chars = max_output_chars
        self._env = dict(env) if env else None

        self._state = ConnectionState.UNSTARTED
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._start_task: asyncio.Task[None] | None = None
        self._pending: dict[int, asyncio.Future[JsonRpcMessage]] = {}
        self._next_id = FIRST_CALL_ID
        self._epoch = 0
        self._cwd: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def cwd(self) -> str | None:
        """Directory the current backend process was spawned in."""
        return self._cwd

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def call_tool(self, name: str, arguments: Mapping[str, Any], cwd: str) -> LookupResult:
        """Call a backend tool and return its labelled text.

        Starts the backend lazily if not already running.

        Returns:
            "[GitNexus]\\n<text>" on success; an empty-text result on any
            transport or call-level failure.
        """
        try:
            await self._ensure_started(cwd)
        except _START_ERRORS as e:
            log.warning("Graph backend unavailable: %s", e)
            return LookupResult.error(f"backend unavailable: {e}")

        process = self._process
        if process is None or self._state is not ConnectionState.READY:
            return LookupResult.error("backend not ready")

        try:
            response = await self._request(
                process, "tools/call", {"name": name, "arguments": dict(arguments)}
            )
        except BackendClosedError as e:
            log.debug("tools/call %s failed: %s", name, e)
            return LookupResult.error(str(e))

        return tool_result_text(response, self.max_output_chars)

    def stop(self) -> None:
        """Terminate the backend and fail every outstanding call.

        Safe to call in any state. The next call_tool() starts a new epoch.
        """
        self._epoch += 1
        process = self._process
        self._process = None
        self._cwd = None
        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        if self._reader_task is not None:
            self._reader_task.cancel()
            self._reader_task = None
        self._start_task = None
        if self._state is not ConnectionState.UNSTARTED:
            self._state = ConnectionState.CLOSED
        self._fail_pending("client stopped")
        if process is not None:
            log.debug("Stopped graph backend (pid %s)", process.pid)

    async def close(self) -> None:
        """stop() and wait for the process to exit."""
        process = self._process
        self.stop()
        if process is not None:
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()

    # -- connection lifecycle --------------------------------------------

    async def _ensure_started(self, cwd: str) -> None:
        if self._state is ConnectionState.READY and self._process is not None:
            return
        if self._start_task is None:
            self._state = ConnectionState.STARTING
            self._start_task = asyncio.ensure_future(self._start(cwd, self._epoch))
            self._start_task.add_done_callback(_consume_exception)
        await asyncio.shield(self._start_task)

    async def _start(self, cwd: str, epoch: int) -> None:
        try:
            argv = build_argv(self.command, "mcp")
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                cwd=cwd,
                env=build_env(self._env),
            )
            if epoch != self._epoch:
                process.terminate()
                raise BackendClosedError("client stopped during startup")

            self._process = process
            self._cwd = cwd
            self._reader_task = asyncio.ensure_future(self._read_loop(process))

            init = self._register(INITIALIZE_ID)
            await self._write(
                process,
                request(
                    INITIALIZE_ID,
                    "initialize",
                    {
                        "protocolVersion": self.protocol_version,
                        "capabilities": {},
                        "clientInfo": {"name": self.client_name, "version": self.client_version},
                    },
                ),
            )
            await init
            await self._write(process, notification("notifications/initialized"))
        except _START_ERRORS as e:
            if epoch == self._epoch:
                self._fail_start(e)
            raise

        if epoch == self._epoch:
            self._state = ConnectionState.READY
            log.info("Graph backend ready (pid %s, cwd %s)", process.pid, cwd)

    def _fail_start(self, error: BaseException) -> None:
        log.warning("Graph backend startup failed: %s", error)
        process = self._process
        self._process = None
        self._cwd = None
        if process is not None and process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        if self._reader_task is not None:
            self._reader_task.cancel()
            self._reader_task = None
        self._start_task = None
        self._state = ConnectionState.ERRORED
        self._fail_pending("backend startup failed")

    async def _read_loop(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        buffer = LineBuffer()
        while True:
            try:
                chunk = await process.stdout.read(_READ_CHUNK)
            except OSError as e:
                log.debug("Read from backend failed: %s", e)
                break
            if not chunk:
                break
            for message in buffer.feed(chunk):
                self._dispatch(message)

        if buffer.pending:
            log.debug("Dropping %d bytes of unterminated output", len(buffer.pending))
        await process.wait()
        self._on_exit(process)

    def _on_exit(self, process: asyncio.subprocess.Process) -> None:
        if self._process is not process:
            return
        log.info("Graph backend exited with code %s", process.returncode)
        self._process = None
        self._reader_task = None
        self._cwd = None
        if self._state is ConnectionState.READY:
            self._state = ConnectionState.CLOSED
            self._start_task = None
        # During STARTING the failed handshake future moves us to ERRORED
        self._fail_pending("backend process exited")

    # -- request/response correlation -------------------------------------

    def _register(self, request_id: int) -> asyncio.Future[JsonRpcMessage]:
        future: asyncio.Future[JsonRpcMessage] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        return future

    async def _request(
        self,
        process: asyncio.subprocess.Process,
        method: str,
        params: dict[str, Any],
    ) -> JsonRpcMessage:
        request_id = self._next_id
        self._next_id += 1
        future = self._register(request_id)
        try:
            await self._write(process, request(request_id, method, params))
        except BackendClosedError:
            self._pending.pop(request_id, None)
            future.cancel()
            raise
        return await future

    def _dispatch(self, message: JsonRpcMessage) -> None:
        if not message.is_response():
            kind = "request" if message.is_request() else "notification"
            log.debug("Ignoring server %s %s", kind, message.method)
            return
        request_id = message.id
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            return
        future = self._pending.pop(request_id, None)
        if future is None:
            log.debug("Ignoring response with unknown id %s", request_id)
            return
        if not future.done():
            future.set_result(message)

    def _fail_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(BackendClosedError(reason))

    @staticmethod
    async def _write(process: asyncio.subprocess.Process, message: JsonRpcMessage) -> None:
        if process.stdin is None or process.stdin.is_closing():
            raise BackendClosedError("backend stdin is closed")
        try:
            process.stdin.write(message.encode())
            await process.stdin.drain()
        except OSError as e:
            raise BackendClosedError(f"write failed: {e}") from e


def tool_result_text(message: JsonRpcMessage, limit: int = MAX_OUTPUT_CHARS) -> LookupResult:
    """Interpret a tools/call response.

    Only text blocks not flagged as errors are kept, newline-joined. A
    top-level error, a result-level isError, or no usable content all give
    an empty-text result.
    """
    if message.error:
        detail = message.error.get("message") if isinstance(message.error, dict) else message.error
        return LookupResult.error(f"backend error: {detail}")

    result = message.result
    if not isinstance(result, dict) or result.get("isError"):
        return LookupResult.empty("error-flagged result")

    content = result.get("content")
    if not isinstance(content, list) or not content:
        return LookupResult.empty("no content")

    text = "\n".join(
        block["text"]
        for block in content
        if isinstance(block, dict)
        and block.get("type") == "text"
        and not block.get("isError")
        and isinstance(block.get("text"), str)
        and block["text"]
    )
    if not text:
        return LookupResult.empty("no text content")

    return LookupResult(
        text=f"{RESULT_LABEL}\n{text[:limit]}",
        status="ok",
        truncated=len(text) > limit,
    )


def _consume_exception(task: asyncio.Future[Any]) -> None:
    # Startup failures are reported to every awaiting caller; mark them
    # retrieved so an abandoned task does not log a warning.
    if not task.cancelled():
        task.exception()
