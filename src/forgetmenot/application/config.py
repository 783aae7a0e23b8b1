from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from forgetmenot.domain.constants import DEFAULT_REMINDER_TIME

CONFIG_FILES = [
    Path.home() / ".config/forgetmenot/config.toml",
    Path.home() / ".forgetmenot.toml",
]


def _default_database_url() -> str:
    db_path = Path.home() / ".local/share/forgetmenot/forgetmenot.db"
    return f"sqlite+aiosqlite:///{db_path}"


class AppConfig(BaseSettings):
    """
    Configuration model for forgetmenot.
    Supports loading from:
    1. Environment variables (FORGETMENOT_*)
    2. Config file (~/.config/forgetmenot/config.toml)
    3. Manual overrides (CLI / API)
    """

    model_config = SettingsConfigDict(
        env_prefix="FORGETMENOT_",
        extra="ignore",
    )

    # Storage
    backend: Literal["sqlite", "memory"] = "sqlite"
    database_url: str = Field(default_factory=_default_database_url)

    # Server
    host: str = "127.0.0.1"
    port: int = 8777

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/forgetmenot/logs")

    # CLI identity (the HTTP server takes the owner from the request instead)
    default_owner: str = "local"

    # Reminders
    reminder_default_time: str = DEFAULT_REMINDER_TIME
    frontend_url: str = "http://localhost:5173"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins; init (overrides) beat env beat file
        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("reminder_default_time")
    @classmethod
    def check_reminder_time(cls, v: str) -> str:
        hour, sep, minute = v.partition(":")
        if not (sep and hour.isdigit() and minute.isdigit()):
            raise ValueError("reminder time must look like HH:MM")
        if not (0 <= int(hour) < 24 and 0 <= int(minute) < 60):
            raise ValueError("reminder time out of range")
        return v


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/forgetmenot/config.toml (if exists)
    3. Environment variables (FORGETMENOT_*)
    4. cli_overrides (None values are ignored)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
