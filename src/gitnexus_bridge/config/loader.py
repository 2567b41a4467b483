"""Reading, layering, and caching gitnexus-bridge configuration.

Layers, lowest priority first: system file, user file, project file
(<cwd>/.gnb/config.yaml), an explicit --config file, then GNB_CMD / GNB_LOG
from the environment. A broken file is logged and skipped, and a malformed
value falls back to its default. Only an explicit --config that does not exist is an error.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import yaml

from gitnexus_bridge.config.merge import merge_configs
from gitnexus_bridge.config.paths import get_config_paths
from gitnexus_bridge.config.schema import (
    AugmentConfig,
    BackendConfig,
    Config,
    IndexConfig,
    LoggingConfig,
)
from gitnexus_bridge.logging import get_logger

log = get_logger("config")

_SECTIONS = ("backend", "augment", "index", "logging")
_DEFAULT_COMMAND = ["gitnexus"]

_cached_config: Config | None = None


class ConfigError(Exception):
    """Raised when an explicitly requested config file cannot be used."""


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Top-level mapping of a YAML file; {} if missing, unreadable, or not a mapping."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        log.warning("Cannot read %s: %s", path, e)
        return {}

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        log.warning("Ignoring %s, invalid YAML: %s", path, e)
        return {}
    if data is not None and not isinstance(data, dict):
        log.warning("Ignoring %s, top level is not a mapping", path)
        return {}
    return data or {}


def env_overrides() -> dict[str, Any]:
    """Config layer built from GNB_CMD (backend command) and GNB_LOG (log file)."""
    layer: dict[str, Any] = {}
    command = os.environ.get("GNB_CMD", "").strip()
    if command:
        layer["backend"] = {"command": command}
    log_file = os.environ.get("GNB_LOG")
    if log_file:
        layer["logging"] = {"file": log_file}
    return layer


def parse_command(value: Any) -> list[str]:
    """Normalize a configured command into an argument vector.

    A string is split on whitespace ("npx -y gitnexus@latest"); a list is
    taken as-is. Anything else falls back to the default command.
    """
    if isinstance(value, str):
        parts = value.split()
    elif isinstance(value, list):
        parts = [str(p) for p in value if str(p)]
    else:
        parts = []
    return parts or list(_DEFAULT_COMMAND)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name)
    return section if isinstance(section, Mapping) else {}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in ("true", "yes", "on", "1"):
            return True
        if word in ("false", "no", "off", "0"):
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _field(raw: Mapping[str, Any], section: str, key: str, default: Any, convert: Callable[[Any], Any]) -> Any:
    """raw[key] passed through convert. Absent or null gives default; a malformed value is logged and gives default."""
    value = raw.get(key)
    if value is None:
        return default
    try:
        return convert(value)
    except (TypeError, ValueError):
        log.warning("Ignoring %s.%s=%r, using %r", section, key, value, default)
        return default


def _backend(raw: Mapping[str, Any]) -> BackendConfig:
    d = BackendConfig()
    env = raw.get("env")
    return BackendConfig(
        command=parse_command(raw.get("command")),
        env={str(k): str(v) for k, v in env.items()} if isinstance(env, Mapping) else {},
        protocol_version=_field(raw, "backend", "protocol_version", d.protocol_version, str),
        client_name=_field(raw, "backend", "client_name", d.client_name, str),
        client_version=_field(raw, "backend", "client_version", d.client_version, str),
    )


def _augment(raw: Mapping[str, Any]) -> AugmentConfig:
    d = AugmentConfig()
    code_extensions = raw.get("code_extensions")

    def number(key: str, convert: Callable[[Any], Any] = int) -> Any:
        return _field(raw, "augment", key, getattr(d, key), convert)

    return AugmentConfig(
        enabled=_field(raw, "augment", "enabled", d.enabled, _as_bool),
        timeout=number("timeout", float),
        max_output_chars=number("max_output_chars"),
        max_patterns=number("max_patterns"),
        max_batch_files=number("max_batch_files"),
        secondary_limit=number("secondary_limit"),
        min_pattern_length=number("min_pattern_length"),
        code_extensions=None if code_extensions is None else _str_list(code_extensions),
        extra_code_extensions=_str_list(raw.get("extra_code_extensions")),
    )


def _index(raw: Mapping[str, Any]) -> IndexConfig:
    d = IndexConfig()
    return IndexConfig(
        marker=_field(raw, "index", "marker", d.marker, str),
        max_depth=_field(raw, "index", "max_depth", d.max_depth, int),
    )


def _logging(raw: Mapping[str, Any]) -> LoggingConfig:
    return LoggingConfig(
        level=_field(raw, "logging", "level", None, str),
        verbose=_field(raw, "logging", "verbose", None, int),
        file=_field(raw, "logging", "file", None, str),
    )


def dict_to_config(data: dict[str, Any]) -> Config:
    """Typed Config from a merged dict. Unknown top-level keys land in extra."""
    return Config(
        backend=_backend(_section(data, "backend")),
        augment=_augment(_section(data, "augment")),
        index=_index(_section(data, "index")),
        logging=_logging(_section(data, "logging")),
        extra={k: v for k, v in data.items() if k not in _SECTIONS},
    )


def load_config(
    cwd: str | None = None,
    config_file: Path | None = None,
    reload: bool = False,
) -> Config:
    """Merge every config layer into a Config.

    Only the global config (no cwd, no config_file) is cached.

    Raises:
        ConfigError: If config_file is given but does not exist.
    """
    global _cached_config

    is_global = cwd is None and config_file is None
    if is_global and _cached_config is not None and not reload:
        return _cached_config

    layers = []
    for path in get_config_paths(cwd):
        layer = load_yaml_file(path)
        if layer:
            log.debug("Config layer %s", path)
            layers.append(layer)

    if config_file is not None:
        if not config_file.is_file():
            raise ConfigError(f"Config file not found: {config_file}")
        layers.append(load_yaml_file(config_file))

    layers.append(env_overrides())
    config = dict_to_config(merge_configs(*layers))

    if is_global:
        _cached_config = config
    return config


def get_config() -> Config:
    """The cached global config, loaded on first use."""
    return _cached_config if _cached_config is not None else load_config()


def reset_config() -> None:
    """Forget the cached global config."""
    global _cached_config
    _cached_config = None
