"""Lookup result dataclass shared by every backend call path."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a single graph lookup.

    Failures never raise; they come back as a non-ok status with empty text,
    so callers can treat "no augmentation" as an ordinary value.

    Attributes:
        text: Result text (trimmed and truncated). Empty for every non-ok status.
        status: "ok", "empty", "error", or "timeout".
        truncated: True if text was cut to the output budget.
        detail: Short diagnostic for logs (e.g. exit code, error message).
    """

    text: str = ""
    status: str = "empty"  # "ok", "empty", "error", "timeout"
    truncated: bool = False
    detail: str | None = None

    @classmethod
    def ok(cls, text: str, limit: int | None = None) -> LookupResult:
        """Build a result from raw text, trimming and truncating it.

        Blank text is reported as "empty" rather than "ok".
        """
        text = text.strip()
        if not text:
            return cls(status="empty")
        truncated = limit is not None and len(text) > limit
        if truncated:
            text = text[:limit]
        return cls(text=text, status="ok", truncated=truncated)

    @classmethod
    def empty(cls, detail: str | None = None) -> LookupResult:
        return cls(status="empty", detail=detail)

    @classmethod
    def error(cls, detail: str) -> LookupResult:
        return cls(status="error", detail=detail)

    @classmethod
    def timeout(cls, seconds: float) -> LookupResult:
        return cls(status="timeout", detail=f"timed out after {seconds}s")

    @property
    def success(self) -> bool:
        """True if the lookup produced text."""
        return self.status == "ok" and bool(self.text)

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        if self.success:
            return f"<LookupResult ok, {len(self.text)} chars>"
        if self.detail:
            return f"<LookupResult {self.status}, {self.detail}>"
        return f"<LookupResult {self.status}>"
