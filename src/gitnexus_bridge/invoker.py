"""One-shot backend invocation: one short-lived process per lookup."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

from gitnexus_bridge.backend import build_argv, build_env
from gitnexus_bridge.logging import get_logger
from gitnexus_bridge.result import LookupResult

log = get_logger("invoker")

AUGMENT_TIMEOUT = 8.0
MAX_OUTPUT_CHARS = 8 * 1024

# Seconds to wait for a terminated process before escalating to SIGKILL
_TERMINATE_GRACE = 2.0


class AugmentInvoker:
    """Run `<command> augment <pattern>` and collect its output.

    The gitnexus CLI writes augment results to stderr, not stdout, so stderr
    is the default result stream. Pass result_stream="stdout" for a backend
    that follows the usual convention.
    """

    def __init__(
        self,
        command: list[str],
        *,
        timeout: float = AUGMENT_TIMEOUT,
        max_output_chars: int = MAX_OUTPUT_CHARS,
        env: Mapping[str, str] | None = None,
        result_stream: str = "stderr",
    ) -> None:
        if result_stream not in ("stdout", "stderr"):
            raise ValueError(f"result_stream must be 'stdout' or 'stderr', got {result_stream!r}")
        self.command = list(command)
        self.timeout = timeout
        self.max_output_chars = max_output_chars
        self.result_stream = result_stream
        self._env = dict(env) if env else None

    async def invoke(self, pattern: str, cwd: str) -> LookupResult:
        """Look up one pattern.

        Args:
            pattern: Symbol, filename stem, or search term.
            cwd: Directory the backend runs in (selects the index).

        Returns:
            LookupResult with trimmed text truncated to max_output_chars on
            exit code 0; an empty-text result on any failure or timeout.
        """
        argv = build_argv(self.command, "augment", pattern)
        capture_stdout = self.result_stream == "stdout"

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE if capture_stdout else asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL if capture_stdout else asyncio.subprocess.PIPE,
                cwd=cwd,
                env=build_env(self._env),
            )
        except FileNotFoundError:
            log.debug("Backend not found: %s", argv[0])
            return LookupResult.error(f"command not found: {argv[0]}")
        except OSError as e:
            log.debug("Failed to spawn %s: %s", argv[0], e)
            return LookupResult.error(f"spawn failed: {e}")

        try:
            stdout_data, stderr_data = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            log.debug("augment %r timed out after %ss", pattern, self.timeout)
            await _terminate(process)
            return LookupResult.timeout(self.timeout)

        if process.returncode != 0:
            return LookupResult.error(f"exit code {process.returncode}")

        raw = stdout_data if capture_stdout else stderr_data
        output = (raw or b"").decode("utf-8", errors="replace")
        return LookupResult.ok(output, limit=self.max_output_chars)


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """SIGTERM the process, then SIGKILL if it ignores the request."""
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=_TERMINATE_GRACE)
    except asyncio.TimeoutError:
        try:
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass
