"""Knowledge-graph augmentation of host tool results.

Example usage:

    augmenter = Augmenter(load_config(cwd=cwd), ui=host_ui)
    augmenter.start_session(cwd)

    # For each finished tool call
    updated = await augmenter.on_tool_result(ToolEvent.create("grep", {"pattern": "withdraw"}))
    if updated is not None:
        host.replace_result(updated)
"""

from gitnexus_bridge.augment.extract import (
    DEFAULT_CODE_EXTENSIONS,
    PatternExtractor,
    extract_batch,
    extract_pattern,
    extract_secondary,
)
from gitnexus_bridge.augment.inputs import SEARCH_TOOLS, decode_input
from gitnexus_bridge.augment.orchestrator import Augmenter, build_extractor
from gitnexus_bridge.augment.session import DedupCache, SessionState

__all__ = [
    # Orchestration
    "Augmenter",
    "build_extractor",
    # Extraction
    "DEFAULT_CODE_EXTENSIONS",
    "PatternExtractor",
    "extract_batch",
    "extract_pattern",
    "extract_secondary",
    "SEARCH_TOOLS",
    "decode_input",
    # Session
    "DedupCache",
    "SessionState",
]
