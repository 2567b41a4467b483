"""Tool-result augmentation.

Intercepts grep/find/bash/read/read_many results, looks up the most
relevant patterns in the knowledge graph, and appends what comes back as a
trailing text block. Existing blocks are never touched.
"""

from __future__ import annotations

import asyncio
import os
import posixpath

from gitnexus_bridge.augment.extract import PatternExtractor, normalize_extensions
from gitnexus_bridge.augment.inputs import SEARCH_TOOLS
from gitnexus_bridge.augment.session import SessionState
from gitnexus_bridge.config.schema import Config
from gitnexus_bridge.host import HostUI, ToolEvent
from gitnexus_bridge.index import NO_INDEX, IndexLocator
from gitnexus_bridge.invoker import AugmentInvoker
from gitnexus_bridge.logging import get_logger
from gitnexus_bridge.rpc.client import RESULT_LABEL, GraphRpcClient

log = get_logger("augment")

PATTERN_TOO_SHORT = "Pattern too short (min {n} chars)."
NO_CONTEXT = "No graph context found for: {pattern}"

SYSTEM_PROMPT_NOTE = (
    "[GitNexus active] Graph context will appear after search results. "
    "Use gitnexus_query, gitnexus_context, gitnexus_impact, gitnexus_detect_changes, "
    "gitnexus_list_repos for deeper analysis of call chains and execution flows. "
    "If the index is stale after code changes, run gitnexus analyze to rebuild it."
)


def build_extractor(config: Config) -> PatternExtractor:
    """Extractor honoring augment.code_extensions / extra_code_extensions."""
    settings = config.augment
    extractor = PatternExtractor(settings.code_extensions, settings.min_pattern_length)
    if settings.extra_code_extensions:
        extractor.code_extensions |= normalize_extensions(settings.extra_code_extensions)
    return extractor


class Augmenter:
    """Wires extraction, session dedup, and backend lookups together.

    One instance serves one host. Host events for a session must not be
    delivered re-entrantly; the session counters are not locked.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        invoker: AugmentInvoker | None = None,
        rpc: GraphRpcClient | None = None,
        index: IndexLocator | None = None,
        extractor: PatternExtractor | None = None,
        ui: HostUI | None = None,
    ) -> None:
        self.config = config or Config()
        backend = self.config.backend
        augment = self.config.augment

        self.invoker = invoker or AugmentInvoker(
            backend.command,
            timeout=augment.timeout,
            max_output_chars=augment.max_output_chars,
            env=backend.env,
        )
        self.rpc = rpc or GraphRpcClient(
            backend.command,
            protocol_version=backend.protocol_version,
            client_name=backend.client_name,
            client_version=backend.client_version,
            env=backend.env,
            max_output_chars=augment.max_output_chars,
        )
        self.index = index or IndexLocator(self.config.index.marker, self.config.index.max_depth)
        self.extractor = extractor or build_extractor(self.config)
        self.ui = ui
        self.session = SessionState(augment_enabled=augment.enabled)

    # -- session lifecycle -----------------------------------------------

    def start_session(self, cwd: str) -> None:
        """Reset everything bound to the previous session.

        Called on session start and on every session switch. The backend
        process is bound to the directory it was spawned in, so it is
        stopped here and respawned lazily on the next query.
        """
        self.rpc.stop()
        self.index.clear()
        self.session.reset(cwd, enabled=self.config.augment.enabled)
        log.debug("Session started in %s", cwd)

        if self.index.has_index(cwd) and self.ui is not None:
            self.ui.notify(
                "GitNexus: knowledge graph active, searches will be enriched automatically.",
                "info",
            )

    def set_enabled(self, enabled: bool) -> None:
        self.session.augment_enabled = enabled

    def status_line(self) -> str:
        s = self.session
        if not s.augment_enabled:
            return "Auto-augment: off"
        return f"Auto-augment: on ({s.hook_fires} intercepted, {s.hits} enriched this session)"

    def system_prompt_addendum(self, prompt: str | None, cwd: str | None = None) -> str | None:
        """Prompt with a note about graph context appended, or None to leave it alone."""
        if prompt is None or not self.index.has_index(self._cwd(cwd)):
            return None
        return f"{prompt}\n\n{SYSTEM_PROMPT_NOTE}"

    # -- augmentation ------------------------------------------------------

    async def on_tool_result(self, event: ToolEvent, cwd: str | None = None) -> ToolEvent | None:
        """Return an augmented copy of event, or None for no change."""
        if not self.session.augment_enabled:
            return None
        if event.tool_name not in SEARCH_TOOLS:
            return None
        self.session.hook_fires += 1

        cwd = self._cwd(cwd)
        if not self.index.has_index(cwd):
            return None

        if event.tool_name == "read_many":
            return await self._augment_batch(event, cwd)
        return await self._augment_patterns(event, cwd)

    async def _augment_batch(self, event: ToolEvent, cwd: str) -> ToolEvent | None:
        files = self.extractor.extract_batch(event.input, event.content, limit=None)
        fresh = [(path, p) for path, p in files if not self.session.dedup.has(p)]
        fresh = fresh[: self.config.augment.max_batch_files]
        if not fresh:
            return None

        self.session.dedup.add_all(p for _, p in fresh)
        results = await asyncio.gather(*(self.invoker.invoke(p, cwd) for _, p in fresh))
        sections = [
            (posixpath.basename(path), result.text)
            for (path, _), result in zip(fresh, results)
            if result
        ]
        if not sections:
            return None

        self.session.hits += 1
        if len(sections) == 1:
            name, body = sections[0]
            label = f"[GitNexus: {name}]"
        else:
            label = RESULT_LABEL
            body = "\n\n".join(f"### {name}\n{text}" for name, text in sections)
        log.debug("Augmented %s with %d file section(s)", event.tool_name, len(sections))
        return event.with_appended_text(f"\n\n{label}\n{body}")

    async def _augment_patterns(self, event: ToolEvent, cwd: str) -> ToolEvent | None:
        settings = self.config.augment
        candidates = self.extractor.candidates(event, settings.secondary_limit)
        to_run = self.session.dedup.fresh(candidates)[: settings.max_patterns]
        if not to_run:
            return None

        self.session.dedup.add_all(to_run)
        results = await asyncio.gather(*(self.invoker.invoke(p, cwd) for p in to_run))
        combined = "\n\n".join(r.text for r in results if r)
        if not combined:
            return None

        self.session.hits += 1
        log.debug("Augmented %s with %s", event.tool_name, to_run)
        return event.with_appended_text(f"\n\n[GitNexus: {', '.join(to_run)}]\n{combined}")

    async def lookup(self, pattern: str, cwd: str | None = None) -> str:
        """Explicit user-requested lookup. Bypasses the dedup cache."""
        pattern = pattern.strip()
        min_length = self.config.augment.min_pattern_length
        if len(pattern) < min_length:
            return PATTERN_TOO_SHORT.format(n=min_length)
        cwd = self._cwd(cwd)
        if not self.index.has_index(cwd):
            return NO_INDEX
        result = await self.invoker.invoke(pattern, cwd)
        if result:
            return f"{RESULT_LABEL}\n{result.text}"
        return NO_CONTEXT.format(pattern=pattern)

    def _cwd(self, cwd: str | None) -> str:
        return self.session.cwd or cwd or os.getcwd()
