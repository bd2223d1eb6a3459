"""Application settings loaded from environment variables."""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration.

    Every field can be overridden with an environment variable of the same
    name (case-insensitive) or through a local .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./doable.db"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Chat assistant
    anthropic_api_key: Optional[str] = None
    chat_model: str = "claude-3-5-haiku-latest"
    chat_max_tokens: int = 2048
    chat_max_steps: int = 5

    # Invitations
    app_url: str = "http://localhost:3000"
    resend_api_key: Optional[str] = None
    resend_from_email: str = "noreply@doable.app"
    invitation_ttl_days: int = 7

    default_project_color: str = "#6366f1"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
