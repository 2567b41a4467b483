"""Types exchanged with the host agent runtime.

The host delivers one ToolEvent per finished tool call and accepts an
augmented copy back. It also offers a small UI surface for notifications.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol


@dataclass(frozen=True)
class ContentBlock:
    """One block of tool output as the host sees it."""

    type: str = "text"
    text: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ContentBlock:
        text = data.get("text")
        return cls(type=str(data.get("type", "text")), text=text if isinstance(text, str) else None)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type}
        if self.text is not None:
            d["text"] = self.text
        return d


@dataclass(frozen=True)
class ToolEvent:
    """Read-only snapshot of a finished tool invocation."""

    tool_name: str
    input: Mapping[str, Any] = field(default_factory=dict)
    content: tuple[ContentBlock, ...] = ()

    @classmethod
    def create(
        cls,
        tool_name: str,
        input: Mapping[str, Any] | None = None,
        content: Sequence[ContentBlock | Mapping[str, Any]] = (),
    ) -> ToolEvent:
        """Build an event, accepting content blocks as dicts or ContentBlocks."""
        blocks = tuple(
            c if isinstance(c, ContentBlock) else ContentBlock.from_dict(c) for c in content
        )
        return cls(tool_name=tool_name, input=dict(input or {}), content=blocks)

    def with_appended_text(self, text: str) -> ToolEvent:
        """Return a copy with one extra trailing text block. Existing blocks are kept."""
        return replace(self, content=(*self.content, ContentBlock(type="text", text=text)))


class HostUI(Protocol):
    """Notification surface offered by the host."""

    def notify(self, message: str, level: str = "info") -> None:
        """Show a short message. level is "info", "warning", or "error"."""
        ...
