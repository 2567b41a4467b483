"""Per-session augmentation state."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field


class DedupCache:
    """Set of patterns already looked up this session."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def has(self, key: str) -> bool:
        return key in self._seen

    def add(self, key: str) -> bool:
        """Record key. Returns False if it was already present."""
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def add_all(self, keys: Iterable[str]) -> None:
        self._seen.update(keys)

    def fresh(self, keys: Iterable[str]) -> list[str]:
        """Keys not yet seen, in input order."""
        return [k for k in keys if k not in self._seen]

    def clear(self) -> None:
        self._seen.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self) -> Iterator[str]:
        return iter(self._seen)


@dataclass
class SessionState:
    """Counters, dedup set, and toggle for one logical session.

    Attributes:
        cwd: Working directory the session is bound to.
        dedup: Patterns already looked up.
        hook_fires: Tool results intercepted (tool type matched).
        hits: Tool results that were actually augmented.
        augment_enabled: Whether tool results are augmented at all.
    """

    cwd: str = ""
    dedup: DedupCache = field(default_factory=DedupCache)
    hook_fires: int = 0
    hits: int = 0
    augment_enabled: bool = True

    def reset(self, cwd: str, enabled: bool = True) -> None:
        """Start a new session. The toggle goes back to `enabled` whatever it was."""
        self.cwd = cwd
        self.dedup.clear()
        self.hook_fires = 0
        self.hits = 0
        self.augment_enabled = enabled
