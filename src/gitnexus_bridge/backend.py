"""Command and environment assembly for backend child processes."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping

_VAR_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def expand_env_vars(env: Mapping[str, str]) -> dict[str, str]:
    """Substitute ${VAR} references in values; unset variables become ""."""
    return {
        key: _VAR_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
        for key, value in env.items()
    }


def build_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Merge the current environment with configured extras (extras win)."""
    merged = dict(os.environ)
    if extra:
        merged.update(expand_env_vars(extra))
    return merged


def build_argv(command: list[str], *args: str) -> list[str]:
    """Append subcommand arguments to the configured command vector."""
    if not command:
        raise ValueError("backend command is empty")
    return [*command, *args]
