"""
Configuration management for projects-board.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Application
    app_name: str = Field(default="Projects Board")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Database ("memory://" selects the in-process store)
    database_url: str = Field(default="sqlite:///./projects_board.db")

    # GitHub
    github_graphql_url: str = Field(default="https://api.github.com/graphql")
    github_token: Optional[str] = Field(default=None)
    github_user: Optional[str] = Field(default=None)
    github_timeout_seconds: float = Field(default=30.0)
    github_page_size: int = Field(default=100, ge=1, le=100)

    # Swap both adapters for in-memory ones at startup
    mock_mode: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
