"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server-managed OpenRouter key, only used by the demo provider
    openrouter_api_key: str | None = None

    # Provider endpoints (OpenAI-compatible chat completions)
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    google_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"

    # Model listing endpoints
    openrouter_models_url: str = "https://openrouter.ai/api/v1/models"
    google_models_url: str = "https://generativelanguage.googleapis.com/v1beta/models"

    # Demo provider
    demo_model: str = "google/gemini-2.5-flash-lite"

    # Attribution headers sent to OpenRouter
    app_url: str = "http://localhost:3000"
    app_title: str = "Document Parser"

    # Document limits and rendering
    max_file_size_mb: int = 10
    pdf_dpi: int = 200

    # Model-list cache lifetime
    model_cache_ttl_seconds: float = 300.0

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the package directory
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
