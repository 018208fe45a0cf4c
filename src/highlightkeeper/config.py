"""Centralised application configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from highlightkeeper.anchoring.markers import DEFAULT_COLOR
from highlightkeeper.anchoring.models import TEXT_FRAGMENT_LENGTH
from highlightkeeper.anchoring.text_locator import (
    DEFAULT_CONTEXT_RATIO,
    DEFAULT_TARGET_RATIO,
)

logger = logging.getLogger(__name__)

# src/highlightkeeper/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class HighlightConfig(BaseModel):
    """Presentation and behaviour of highlights."""

    color: str = DEFAULT_COLOR
    persistence_enabled: bool = True
    enabled: bool = True


class MatchingConfig(BaseModel):
    """Tunables for content-based anchor resolution.

    The context band accepts a container when its normalised length lies
    between ``len(target) * target_ratio`` and ``len(context) *
    context_ratio``.
    """

    target_ratio: float = Field(default=DEFAULT_TARGET_RATIO, gt=0)
    context_ratio: float = Field(default=DEFAULT_CONTEXT_RATIO, gt=0)
    fragment_length: int = Field(default=TEXT_FRAGMENT_LENGTH, ge=1)

    @model_validator(mode="after")
    def fragment_fits_address_step(self) -> MatchingConfig:
        if self.fragment_length > TEXT_FRAGMENT_LENGTH:
            msg = f"MATCHING__FRAGMENT_LENGTH must be <= {TEXT_FRAGMENT_LENGTH}"
            raise ValueError(msg)
        return self


class StorageConfig(BaseModel):
    """Where highlight data lives on disk."""

    data_dir: Path = Path.home() / "Documents" / "HighlightKeeper"


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")
    console_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``HIGHLIGHT__COLOR``, ``MATCHING__CONTEXT_RATIO``,
    ``STORAGE__DATA_DIR``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    highlight: HighlightConfig = HighlightConfig()
    matching: MatchingConfig = MatchingConfig()
    storage: StorageConfig = StorageConfig()
    app: AppConfig = AppConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
