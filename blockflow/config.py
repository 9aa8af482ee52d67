"""Blockflow configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StalenessMode(str, Enum):
    """How a configuration edit decides which blocks become stale.

    ``POSITION`` marks every block positioned after the edited one in the
    linear block list.  ``REACHABILITY`` marks exactly the blocks reachable
    through connections.
    """

    POSITION = "position"
    REACHABILITY = "reachability"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with BLOCKFLOW_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="BLOCKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False

    # Engine
    db_path: str = ":memory:"

    # Execution
    preview_limit: int = Field(default=100, ge=1)
    auto_cascade: bool = True
    sql_guard_enabled: bool = True

    # Staleness
    staleness_mode: StalenessMode = StalenessMode.POSITION

    # Logging
    structured_logging: bool = False
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded settings: db_path=%s staleness_mode=%s preview_limit=%d",
            settings.db_path,
            settings.staleness_mode.value,
            settings.preview_limit,
        )

    return settings
