import sys
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _default_executable_name() -> str:
    return "llama-server.exe" if sys.platform == "win32" else "llama-server"


class ServerConfig(BaseModel):
    # None resolves to PROJECT_ROOT / "llama.cpp" in the loader
    llama_cpp_dir: Optional[Path] = None
    executable_name: str = Field(default_factory=_default_executable_name)
    # Relative to llama_cpp_dir (the process working directory)
    model_path: str = "models/ai.gguf"

    host: str = "127.0.0.1"
    # 0 = random port from [port_min, port_max)
    port: int = Field(default=0, ge=0, le=65535)
    port_min: int = Field(default=1024, ge=1, le=65535)
    port_max: int = Field(default=65536, ge=2, le=65536)
    extra_args: List[str] = []

    startup_delay_seconds: int = Field(default=10, ge=0)
    process_terminate_timeout: float = Field(default=5.0, gt=0)

    model_config = {"extra": "ignore", "protected_namespaces": ()}

    @model_validator(mode="after")
    def check_port_range(self) -> "ServerConfig":
        if self.port_min >= self.port_max:
            raise ValueError(f"port_min ({self.port_min}) must be lower than port_max ({self.port_max})")
        return self


class ClientConfig(BaseModel):
    model: str = "local"
    system_prompt: str = "Short answer"
    # None disables the timeout entirely
    request_timeout: Optional[float] = None

    model_config = {"extra": "ignore"}


class ConsoleConfig(BaseModel):
    exit_keyword: str = "exit"

    model_config = {"extra": "ignore"}

    @field_validator("exit_keyword")
    @classmethod
    def exit_keyword_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("exit_keyword must not be blank")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    console_level: str = "WARNING"
    log_to_file: bool = True
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    max_age_days: int = 7

    model_config = {"extra": "ignore"}

    @field_validator("level", "console_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class ConsoleSettings(BaseSettings):
    """
    Root configuration object using pydantic-settings.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)

    client: ClientConfig = Field(default_factory=ClientConfig)

    console: ConsoleConfig = Field(default_factory=ConsoleConfig)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="LLAMA_CONSOLE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Precedence: Init > Env > Dotenv > Defaults.
        The loader adds the YAML source on top of this.
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
