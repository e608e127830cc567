from .loader import (
    LOG_DIR,
    PROJECT_ROOT,
    ConfigManager,
    YamlConfigSettingsSource,
    config_manager,
    resolve_config_path,
    settings,
)
from .schema import (
    ClientConfig,
    ConsoleConfig,
    ConsoleSettings,
    LoggingConfig,
    ServerConfig,
)

__all__ = [
    "LOG_DIR",
    "PROJECT_ROOT",
    "ConfigManager",
    "YamlConfigSettingsSource",
    "config_manager",
    "resolve_config_path",
    "settings",
    "ClientConfig",
    "ConsoleConfig",
    "ConsoleSettings",
    "LoggingConfig",
    "ServerConfig",
]
