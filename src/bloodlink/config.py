"""Configuration and environment loading for BloodLink."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Supabase (party directory and alert history)
    supabase_url: str
    supabase_key: str

    # Firebase Cloud Messaging (HTTP v1)
    fcm_credentials_file: str | None = None  # Service-account JSON key
    fcm_project_id: str | None = None  # Defaults to the key's project

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"

    # Deadlines for outbound calls, in seconds
    directory_timeout: float = 5.0
    push_timeout: float = 10.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
