"""Typed views of the host's tool inputs.

Each tool the augmenter understands gets one frozen dataclass and one
decoder. Decoders never raise: a missing or mistyped field becomes None.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class GrepInput:
    """Structured search: `pattern` is a regular expression."""

    pattern: str | None


@dataclass(frozen=True)
class FindInput:
    """Glob search. The host's field name varies, so the first string of
    pattern, glob, path is used."""

    glob: str | None


@dataclass(frozen=True)
class BashInput:
    command: str


@dataclass(frozen=True)
class ReadInput:
    path: str | None


@dataclass(frozen=True)
class ReadManyInput:
    """Multi-file read: input is {files: [{path: ...}, ...]}."""

    paths: tuple[str, ...]


ToolInput = Union[GrepInput, FindInput, BashInput, ReadInput, ReadManyInput]


def _string(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _decode_grep(data: Mapping[str, Any]) -> GrepInput:
    return GrepInput(pattern=_string(data, "pattern"))


def _decode_find(data: Mapping[str, Any]) -> FindInput:
    for key in ("pattern", "glob", "path"):
        value = _string(data, key)
        if value is not None:
            return FindInput(glob=value)
    return FindInput(glob=None)


def _decode_bash(data: Mapping[str, Any]) -> BashInput:
    return BashInput(command=_string(data, "command") or "")


def _decode_read(data: Mapping[str, Any]) -> ReadInput:
    return ReadInput(path=_string(data, "path"))


def _decode_read_many(data: Mapping[str, Any]) -> ReadManyInput:
    files = data.get("files")
    if not isinstance(files, list):
        return ReadManyInput(paths=())
    paths = tuple(
        f["path"] for f in files if isinstance(f, Mapping) and isinstance(f.get("path"), str)
    )
    return ReadManyInput(paths=paths)


_DECODERS: dict[str, Callable[[Mapping[str, Any]], ToolInput]] = {
    "grep": _decode_grep,
    "find": _decode_find,
    "bash": _decode_bash,
    "read": _decode_read,
    "read_many": _decode_read_many,
}

SEARCH_TOOLS = frozenset(_DECODERS)


def decode_input(tool_name: str, data: Mapping[str, Any] | None) -> ToolInput | None:
    """Decode a raw tool input, or None for tools the augmenter ignores."""
    decoder = _DECODERS.get(tool_name)
    if decoder is None:
        return None
    return decoder(data if isinstance(data, Mapping) else {})
