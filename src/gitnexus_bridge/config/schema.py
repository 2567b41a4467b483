"""Typed view of the merged config.yaml layers.

Every field has a default, so an empty or partial file yields a usable Config.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BackendConfig:
    """The gitnexus executable and the MCP handshake identity.

        backend:
          command: "npx -y gitnexus@latest"
          env:
            GITNEXUS_HOME: "${HOME}/.gitnexus"
    """

    command: list[str] = field(default_factory=lambda: ["gitnexus"])
    env: dict[str, str] = field(default_factory=dict)  # ${VAR} values expanded at spawn
    protocol_version: str = "2024-11-05"
    client_name: str = "gitnexus-bridge"
    client_version: str = "0.1.0"


@dataclass
class AugmentConfig:
    enabled: bool = True
    timeout: float = 8.0  # seconds per one-shot lookup
    max_output_chars: int = 8 * 1024
    max_patterns: int = 3
    max_batch_files: int = 5
    secondary_limit: int = 2  # filenames taken from grep result lines
    min_pattern_length: int = 3
    code_extensions: list[str] | None = None  # replaces the built-in table
    extra_code_extensions: list[str] = field(default_factory=list)


@dataclass
class IndexConfig:
    marker: str = ".gitnexus"
    max_depth: int = 5  # cwd counts as the first level


@dataclass
class LoggingConfig:
    level: str | None = None
    verbose: int | None = None  # 0-4; takes precedence over level
    file: str | None = None


@dataclass
class Config:
    backend: BackendConfig = field(default_factory=BackendConfig)
    augment: AugmentConfig = field(default_factory=AugmentConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)  # unrecognized top-level keys
