"""
Centralized configuration management for studycore.
"""
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_CARD_LIMIT, MAX_CARD_LIMIT


def get_default_db_path() -> Path:
    """Returns the default path for the database file."""
    return Path.home() / ".studycore" / "study.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from environment variables or .env files.

    Every field can be overridden with a ``STUDYCORE_`` prefixed environment
    variable, e.g. ``STUDYCORE_STRICT_INVARIANTS=1``.
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDYCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Core Paths ---
    db_path: Path = Field(default_factory=get_default_db_path)

    # --- Study runs ---
    default_card_limit: int = Field(default=DEFAULT_CARD_LIMIT, ge=1)
    max_card_limit: int = Field(default=MAX_CARD_LIMIT, ge=1)

    # When True, session invariant violations raise instead of being clamped.
    # Meant for development and tests.
    strict_invariants: bool = False

    # --- Testing Configuration ---
    # When True, disables safety checks that prevent data loss during tests.
    # Should NEVER be enabled in production.
    testing_mode: bool = False


def get_settings() -> Settings:
    """Build a Settings instance from the current environment."""
    return Settings()
