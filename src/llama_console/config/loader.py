# llama_console/config/loader.py
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

import yaml
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from .schema import ConsoleSettings

logger = logging.getLogger(__name__)


def _find_project_root() -> Path:
    """
    Deterministically find the project root.
    Priority:
    1. LLAMA_CONSOLE_ROOT environment variable.
    2. PyInstaller executable directory.
    3. Search for pyproject.toml from current file upwards.
    4. Current working directory (fallback).
    """
    env_root = os.getenv("LLAMA_CONSOLE_ROOT")
    if env_root:
        return Path(env_root).resolve()

    # llama.cpp ships next to the frozen executable
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent

    current = Path(__file__).resolve().parent
    for _ in range(10):  # Max 10 levels up to prevent infinite loop
        if (current / "pyproject.toml").exists():
            return current
        if current.parent == current:
            break
        current = current.parent

    return Path.cwd()


PROJECT_ROOT = _find_project_root()
LOG_DIR = PROJECT_ROOT / "logs"

load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    A settings source that loads values from a YAML file.
    """

    def __init__(self, settings_cls: Type[BaseSettings], yaml_path: Path):
        super().__init__(settings_cls)
        self.yaml_path = yaml_path

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        # Not used when returning the whole dict from __call__
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        if not self.yaml_path.exists():
            return {}
        try:
            with open(self.yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load YAML config from %s: %s", self.yaml_path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("YAML config %s must contain a mapping, got %s", self.yaml_path, type(data).__name__)
            return {}
        return data


def resolve_config_path() -> Path:
    """
    Priority:
    1. LLAMA_CONSOLE_CONFIG_PATH env var
    2. PROJECT_ROOT / config.yml
    """
    env_config = os.getenv("LLAMA_CONSOLE_CONFIG_PATH")
    if env_config:
        return Path(env_config)
    return PROJECT_ROOT / "config.yml"


class DefaultConsoleSettings(ConsoleSettings):
    """Built-in defaults only; environment, .env and YAML are not consulted."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)


class ConfigManager:
    _instance = None
    _settings: Optional[ConsoleSettings] = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def load_config(self, force_reload: bool = False) -> None:
        """
        Load configuration using Pydantic Settings.
        """
        if self._initialized and not force_reload:
            return

        config_path = resolve_config_path()

        # Subclass ConsoleSettings to inject the YAML source dynamically
        class LoadedConsoleSettings(ConsoleSettings):
            @classmethod
            def settings_customise_sources(
                cls,
                settings_cls: Type[BaseSettings],
                init_settings: PydanticBaseSettingsSource,
                env_settings: PydanticBaseSettingsSource,
                dotenv_settings: PydanticBaseSettingsSource,
                file_secret_settings: PydanticBaseSettingsSource,
            ) -> tuple[PydanticBaseSettingsSource, ...]:
                return (
                    init_settings,
                    env_settings,
                    dotenv_settings,
                    YamlConfigSettingsSource(settings_cls, config_path),
                    file_secret_settings,
                )

        try:
            self._settings = LoadedConsoleSettings()
            logger.info("Settings initialized. Priority: Env > .env > YAML (%s) > Defaults", config_path)
        except Exception as e:
            logger.error("Failed to validate settings, using defaults: %s", e, exc_info=True)
            # the bad value may come from the environment, so skip every external source
            self._settings = DefaultConsoleSettings()

        llama_cpp_dir = self._settings.server.llama_cpp_dir
        if llama_cpp_dir is None:
            self._settings.server.llama_cpp_dir = PROJECT_ROOT / "llama.cpp"
        elif not llama_cpp_dir.is_absolute():
            self._settings.server.llama_cpp_dir = PROJECT_ROOT / llama_cpp_dir

        self._initialized = True

    @property
    def settings(self) -> ConsoleSettings:
        if not self._initialized or self._settings is None:
            self.load_config()
        return self._settings


# Singleton Instance
config_manager = ConfigManager()


class SettingsProxy:
    def __getattr__(self, name):
        return getattr(config_manager.settings, name)


settings = SettingsProxy()
