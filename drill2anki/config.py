"""
Configuration settings for drill2anki.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Anki Integration
    # ========================================
    anki_connect_url: str = Field(
        default="http://127.0.0.1:8765",
        description="AnkiConnect plugin URL",
    )
    anki_deck_name: str = Field(
        default="Default",
        description="Deck used when neither the entry nor the file names one",
    )
    anki_timeout: int = Field(
        default=30,
        description="AnkiConnect request timeout in seconds",
    )

    # ─── Note types and field names ─────────────────────────────────────────────
    basic_note_type: str = Field(default="Basic")
    reversed_note_type: str = Field(default="Basic (and reversed card)")
    cloze_note_type: str = Field(default="Cloze")
    front_field: str = Field(default="Front")
    back_field: str = Field(default="Back")
    cloze_text_field: str = Field(default="Text")
    cloze_extra_field: str = Field(default="Back Extra")

    # ========================================
    # org-drill Source Format
    # ========================================
    drill_tag: str = Field(
        default="drill",
        description="Tag marking an org heading as a drill entry",
    )
    cloze_left_delimiter: str = Field(default="[")
    cloze_right_delimiter: str = Field(default="]")
    cloze_hint_separator: str = Field(default="||")

    # ========================================
    # Conversion Behavior
    # ========================================
    keep_drill_properties: bool = Field(
        default=False,
        description="Leave DRILL_* properties and SCHEDULED lines on converted notes",
    )
    history_file: str = Field(
        default="drill_history.csv",
        description="Scheduling-history CSV written next to converted files",
    )
    output_suffix: str = Field(
        default=".anki",
        description="Inserted before .org when writing converted files alongside sources",
    )
    dry_run: bool = Field(
        default=False,
        description="Log actions without making changes",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
