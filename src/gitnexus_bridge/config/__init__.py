"""Layered YAML configuration.

Files are read from the system, user, and project locations (see
config.paths), then GNB_CMD and GNB_LOG are applied on top:

    config = load_config(cwd=os.getcwd())
    config.backend.command  # ["gitnexus"] unless overridden
"""

from gitnexus_bridge.config.loader import (
    ConfigError,
    get_config,
    load_config,
    reset_config,
)
from gitnexus_bridge.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from gitnexus_bridge.config.schema import (
    AugmentConfig,
    BackendConfig,
    Config,
    IndexConfig,
    LoggingConfig,
)

__all__ = [
    "Config",
    "ConfigError",
    "load_config",
    "get_config",
    "reset_config",
    "AugmentConfig",
    "BackendConfig",
    "IndexConfig",
    "LoggingConfig",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
