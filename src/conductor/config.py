"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]  # frontends allowed to call the API

    # AI provider configuration
    PROVIDER: str = "openrouter"  # Options: openrouter, ollama, anthropic
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_MODEL: str = "anthropic/claude-3.5-sonnet"
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.2"
    ANTHROPIC_API_KEY: str | None = None
    REQUEST_TIMEOUT: float = 10.0  # seconds, per network call

    # Command pipeline
    MAX_TURNS: int = 10
    PLAYLIST_MAX_QUERIES: int = 8

    # Library file for the in-memory player (JSON list of tracks)
    LIBRARY_PATH: str | None = None

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
