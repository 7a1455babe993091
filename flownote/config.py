"""
Settings read from the environment.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Runtime settings.

    Environment variables:
    - FLOWNOTE_HOME: data directory (default ~/.flownote)
    - FLOWNOTE_GLOBALS: global variables file (default $FLOWNOTE_HOME/globals.json)
    - FLOWNOTE_LOG_LEVEL: logging level (default WARNING)
    - FLOWNOTE_POLL_INTERVAL: seconds between checks in watch mode (default 1.0)
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOWNOTE_",
        env_ignore_empty=True,
        populate_by_name=True,
    )

    home: Path = Field(default_factory=lambda: Path.home() / ".flownote")
    globals_file: Optional[Path] = Field(default=None, validation_alias="FLOWNOTE_GLOBALS")
    log_level: str = "WARNING"
    poll_interval: float = Field(default=1.0, gt=0)

    @field_validator("home", "globals_file")
    @classmethod
    def _expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return value

    @property
    def globals_path(self) -> Path:
        return self.globals_file or self.home / "globals.json"


def load_settings() -> Settings:
    """Build settings from FLOWNOTE_* environment variables; unset ones keep their defaults."""
    return Settings()
