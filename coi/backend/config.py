"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Provider credentials (required - absence is a startup error)
    gemini_api_key: str = Field(..., min_length=1)
    groq_api_key: str = Field(..., min_length=1)

    # Upload handling
    upload_dir: Path = Path(__file__).parent / "uploads"
    max_pages: int = 5
    max_files: int = 5
    max_file_size_mb: int = 10

    # Rasterization (A4 at 150 DPI)
    raster_dpi: int = 150
    raster_width: int = 2480
    raster_height: int = 3508

    # Model tiers per backend
    inline_primary_model: str = "gemini-2.5-flash"
    inline_fallback_model: str = "gemini-2.5-flash-lite"
    files_api_primary_model: str = "gemini-2.5-flash-lite"
    files_api_fallback_model: str = "gemini-2.5-flash"
    groq_primary_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    groq_fallback_model: str = "meta-llama/llama-4-maverick-17b-128e-instruct"

    # Groq is reached through its OpenAI-compatible endpoint
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_timeout_seconds: float = 15.0
    groq_max_tokens: int = 5000

    # Files API polling
    poll_interval_seconds: float = 2.0
    poll_timeout_seconds: float = 120.0

    # Whole-request deadline; cleanup still runs when it fires
    request_timeout_seconds: float = 300.0

    # What a backend returns once both model tiers failed
    fallback_exhausted_policy: Literal["raise", "null"] = "raise"

    # Debug flags
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the backend directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
