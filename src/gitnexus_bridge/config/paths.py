"""Where gitnexus-bridge looks for config.yaml.

    system   /etc/gitnexus-bridge/           %PROGRAMDATA%\\gitnexus-bridge\\
    user     $XDG_CONFIG_HOME/gitnexus-bridge/, ~/.config/gitnexus-bridge/
             or ~/.gnb/                       %APPDATA%\\gitnexus-bridge\\
    project  <cwd>/.gnb/
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "gitnexus-bridge"
SHORT_NAME = ".gnb"


def _windows_dir(env_var: str) -> Path | None:
    base = os.environ.get(env_var)
    return Path(base) / APP_NAME if base else None


def _user_dir() -> Path:
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME
    dot_config = Path.home() / ".config"
    if dot_config.exists():
        return dot_config / APP_NAME
    return Path.home() / SHORT_NAME


def get_system_config_path() -> Path | None:
    """System-wide config file, or None when the platform has no location."""
    if sys.platform == "win32":
        directory = _windows_dir("PROGRAMDATA")
    else:
        directory = Path("/etc") / APP_NAME
    return directory / CONFIG_FILENAME if directory else None


def get_user_config_path() -> Path | None:
    """Per-user config file, or None when the platform has no location."""
    directory = _windows_dir("APPDATA") if sys.platform == "win32" else _user_dir()
    return directory / CONFIG_FILENAME if directory else None


def get_project_config_path(cwd: str) -> Path:
    return Path(cwd) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(cwd: str | None = None) -> list[Path]:
    """Candidate files from lowest to highest priority. None may exist."""
    candidates = [get_system_config_path(), get_user_config_path()]
    if cwd:
        candidates.append(get_project_config_path(cwd))
    return [path for path in candidates if path is not None]
