"""
Oche - Application Settings

Loads configuration from environment variables (prefix OCHE_) or a .env file
using Pydantic Settings, and sets up logging.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # Rules
    strict_double_out: bool = False

    # Presentation
    turn_delay_s: float = 1.5
    achievement_toast_s: float = 5.0

    # Persistence: None keeps everything in memory
    data_dir: Path | None = None

    model_config = SettingsConfigDict(
        env_prefix="OCHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached singleton settings instance."""
    return Settings()


def configure_logging(level: str | None = None, *, settings: Settings | None = None) -> None:
    """
    Configure root logging once; later calls only adjust the level.

    An explicit level wins. Otherwise `debug` forces DEBUG, else `log_level` applies.
    """
    if level is None:
        settings = settings or get_settings()
        level = "DEBUG" if settings.debug else settings.log_level
    level_name = level.upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level_name, format=LOG_FORMAT)
    root.setLevel(level_name)
