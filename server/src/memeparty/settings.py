"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Phase deadlines
    selection_duration_seconds: float = 45.0
    voting_duration_seconds: float = 60.0
    results_duration_seconds: float = 12.0

    # Tenor content provider (mock provider is used when no key is set)
    tenor_api_key: str = ""
    tenor_base_url: str = "https://tenor.googleapis.com/v2"
    tenor_client_key: str = "memeparty"
    tenor_timeout_seconds: float = 5.0

    # Frontend
    frontend_url: str = "http://localhost:5173"
    cors_allowed_origins: list[str] = []

    # Rate limiting for HTTP lobby creation
    rate_limiting_enabled: bool = True

    # Lobby retention
    lobby_idle_timeout_seconds: int = 3600
    cleanup_interval_seconds: int = 300

    # Development mode
    dev_mode: bool = False

    @property
    def tenor_enabled(self) -> bool:
        """Check if the Tenor provider is configured."""
        return bool(self.tenor_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
