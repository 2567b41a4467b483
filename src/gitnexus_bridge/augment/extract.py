"""Lookup-pattern extraction from tool invocations.

Pure functions of the tool name, input, and result text: no I/O and no
hidden state, so the same event always yields the same candidates.

    grep      -> input pattern with regex metacharacters removed
    find      -> basename of the glob without extension or wildcards
    bash      -> grep/rg pattern, find -name value, or cat/head/tail filename
    read      -> basename of the file path (code files only)
    read_many -> basenames of every code file read
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from gitnexus_bridge.augment.inputs import (
    BashInput,
    FindInput,
    GrepInput,
    ReadInput,
    ReadManyInput,
    decode_input,
)
from gitnexus_bridge.host import ContentBlock, ToolEvent

DEFAULT_CODE_EXTENSIONS = frozenset({
    ".sol", ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".go", ".rs",
    ".java", ".kt", ".scala", ".swift", ".c", ".cpp", ".cc", ".h", ".hpp",
    ".cs", ".rb", ".php", ".lua", ".dart", ".ex", ".exs", ".vue", ".svelte",
    ".vy", ".fe", ".huff",
})

MIN_PATTERN_LENGTH = 3
MAX_PATTERN_LENGTH = 200
BATCH_LIMIT = 5
SECONDARY_LIMIT = 2

_REGEX_META = re.compile(r"[\\^$.*+?()\[\]{}|]")
_GLOB_CHARS = re.compile(r"[*?\[\]{}]")
_QUOTES = re.compile(r"[\"']")
_EXTENSION = re.compile(r"\.\w+$", re.ASCII)
_GREP_LINE = re.compile(r"^([^\n:]+\.\w+):\d+:", re.ASCII)
_AT_PATH_LINE = re.compile(r"^@(.+)$")

_SEARCH_COMMANDS = frozenset({"grep", "rg"})
_FILE_COMMANDS = frozenset({"cat", "head", "tail", "less", "wc"})
_NAME_FLAGS = frozenset({"-name", "-iname"})


def strip_regex(text: str) -> str:
    return _REGEX_META.sub("", text)


def strip_quotes(text: str) -> str:
    return _QUOTES.sub("", text)


def stem(path: str) -> str:
    """Basename with its last extension removed ("src/Vault.sol" -> "Vault")."""
    return _EXTENSION.sub("", posixpath.basename(path))


def glob_stem(glob: str) -> str:
    """Basename of a glob with extension and wildcard characters removed."""
    return _GLOB_CHARS.sub("", stem(glob))


def joined_text(content: Iterable[ContentBlock]) -> str:
    return "\n".join(block.text or "" for block in content)


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lowercase and dot-prefix configured extensions ("sol" -> ".sol")."""
    normalized = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if ext:
            normalized.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(normalized)


class PatternExtractor:
    """Maps tool invocations to short graph lookup keys.

    Args:
        code_extensions: File extensions treated as source code. Defaults to
            DEFAULT_CODE_EXTENSIONS.
        min_length: Candidates shorter than this are discarded.
        max_length: Candidates longer than this are discarded.
    """

    def __init__(
        self,
        code_extensions: Iterable[str] | None = None,
        min_length: int = MIN_PATTERN_LENGTH,
        max_length: int = MAX_PATTERN_LENGTH,
    ) -> None:
        if code_extensions is None:
            self.code_extensions = DEFAULT_CODE_EXTENSIONS
        else:
            self.code_extensions = normalize_extensions(code_extensions)
        self.min_length = min_length
        self.max_length = max_length

    def is_code_file(self, path: str) -> bool:
        return posixpath.splitext(path)[1] in self.code_extensions

    def extract(self, tool_name: str, tool_input: Mapping[str, Any] | None) -> str | None:
        """Primary candidate from a tool's input, or None."""
        decoded = decode_input(tool_name, tool_input)
        pattern: str | None = None

        if isinstance(decoded, GrepInput):
            if decoded.pattern:
                pattern = strip_regex(decoded.pattern)
        elif isinstance(decoded, FindInput):
            if decoded.glob:
                pattern = glob_stem(decoded.glob)
        elif isinstance(decoded, BashInput):
            pattern = self._from_command(decoded.command)
        elif isinstance(decoded, ReadInput):
            if decoded.path and self.is_code_file(decoded.path):
                pattern = stem(decoded.path)

        return self._accept(pattern)

    def _from_command(self, command: str) -> str | None:
        tokens = command.split()
        in_search = False
        in_file_cmd = False

        for i, tok in enumerate(tokens):
            # grep/rg: first non-flag arg is the search pattern
            if tok in _SEARCH_COMMANDS:
                in_search, in_file_cmd = True, False
                continue
            if in_search:
                if tok.startswith("-"):
                    continue
                return strip_regex(strip_quotes(tok))

            # cat/head/tail/less/wc: next non-flag arg is a file path
            if tok in _FILE_COMMANDS:
                in_file_cmd, in_search = True, False
                continue
            if in_file_cmd:
                if tok.startswith("-"):
                    continue
                path = strip_quotes(tok)
                return stem(path) if self.is_code_file(path) else None

            if tok == "find":
                in_search = in_file_cmd = False
                continue
            if tok in _NAME_FLAGS and i + 1 < len(tokens):
                name = glob_stem(strip_quotes(tokens[i + 1]))
                return name if self._fits(name) else None

        return None

    def extract_secondary(
        self,
        content: Sequence[ContentBlock],
        limit: int = SECONDARY_LIMIT,
    ) -> list[str]:
        """Filename stems from grep-style "path:line:" result lines, first seen first."""
        seen: set[str] = set()
        results: list[str] = []
        if limit <= 0:
            return results

        for line in joined_text(content).split("\n"):
            match = _GREP_LINE.match(line)
            if not match:
                continue
            base = stem(match.group(1))
            if self._fits(base) and base not in seen:
                seen.add(base)
                results.append(base)
            if len(results) >= limit:
                break
        return results

    def extract_batch(
        self,
        tool_input: Mapping[str, Any] | None,
        content: Sequence[ContentBlock] = (),
        limit: int | None = BATCH_LIMIT,
    ) -> list[tuple[str, str]]:
        """(path, pattern) pairs for a multi-file read.

        Paths come from input["files"][*]["path"]; when that yields nothing,
        "@<path>" lines in the result text are used instead. Only code files
        count, and each derived pattern appears once. limit=None disables
        the cap.
        """
        seen: set[str] = set()
        results: list[tuple[str, str]] = []

        def add(path: str) -> None:
            if not self.is_code_file(path):
                return
            pattern = stem(path)
            if not self._fits(pattern) or pattern in seen:
                return
            seen.add(pattern)
            results.append((path, pattern))

        decoded = decode_input("read_many", tool_input)
        assert isinstance(decoded, ReadManyInput)
        for path in decoded.paths:
            add(path)

        if not results:
            for line in joined_text(content).split("\n"):
                match = _AT_PATH_LINE.match(line)
                if match:
                    add(match.group(1).strip())

        return results if limit is None else results[:limit]

    def candidates(self, event: ToolEvent, secondary_limit: int = SECONDARY_LIMIT) -> list[str]:
        """Primary plus secondary candidates for a single-pattern event.

        Secondary filenames are only read from grep and bash results.
        Duplicates are dropped, keeping first-seen order.
        """
        found: list[str] = []
        primary = self.extract(event.tool_name, event.input)
        if primary:
            found.append(primary)
        if event.tool_name in ("grep", "bash"):
            found.extend(self.extract_secondary(event.content, secondary_limit))
        return list(dict.fromkeys(found))

    def _fits(self, pattern: str) -> bool:
        return self.min_length <= len(pattern) <= self.max_length

    def _accept(self, pattern: str | None) -> str | None:
        return pattern if pattern and self._fits(pattern) else None


_default = PatternExtractor()


def extract_pattern(tool_name: str, tool_input: Mapping[str, Any] | None) -> str | None:
    """Primary candidate using the default extension table."""
    return _default.extract(tool_name, tool_input)


def extract_secondary(content: Sequence[ContentBlock], limit: int = SECONDARY_LIMIT) -> list[str]:
    return _default.extract_secondary(content, limit)


def extract_batch(
    tool_input: Mapping[str, Any] | None,
    content: Sequence[ContentBlock] = (),
    limit: int | None = BATCH_LIMIT,
) -> list[tuple[str, str]]:
    return _default.extract_batch(tool_input, content, limit)
