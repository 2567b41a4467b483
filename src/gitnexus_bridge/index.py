"""Index marker discovery and path containment checks."""

from __future__ import annotations

import os

from gitnexus_bridge.logging import get_logger

log = get_logger("index")

DEFAULT_MARKER = ".gitnexus"
DEFAULT_MAX_DEPTH = 5

NO_INDEX = "No GitNexus index found. Run: gitnexus analyze"


class IndexLocator:
    """Finds the graph index marker at or above a working directory.

    Results are cached per cwd until clear() is called, which the
    orchestrator does on every session boundary.
    """

    def __init__(self, marker: str = DEFAULT_MARKER, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.marker = marker
        self.max_depth = max_depth
        self._cache: dict[str, bool] = {}

    def has_index(self, cwd: str) -> bool:
        """Walk up to max_depth directories (cwd included) looking for the marker."""
        if cwd in self._cache:
            return self._cache[cwd]

        found = False
        directory = os.path.abspath(cwd)
        for _ in range(self.max_depth):
            if os.path.exists(os.path.join(directory, self.marker)):
                found = True
                break
            parent = os.path.dirname(directory)
            if parent == directory:
                break
            directory = parent

        log.debug("Index marker %s for %s: %s", self.marker, cwd, found)
        self._cache[cwd] = found
        return found

    def clear(self) -> None:
        self._cache.clear()


def safe_resolve_path(file: str, cwd: str) -> str | None:
    """Resolve file against cwd, refusing anything that escapes it.

    Returns:
        The absolute path, or None if it lies outside cwd.
    """
    root = os.path.abspath(cwd)
    resolved = os.path.abspath(os.path.join(root, file))
    if resolved == root or resolved.startswith(root + os.sep):
        return resolved
    return None
