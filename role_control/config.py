"""
Application configuration using pydantic-settings.
Loads from environment variables (RBEC_ prefix) with .env file support.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RBEC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./role_control.db"

    # Persisted option records are stored as <option_prefix><name>
    option_prefix: str = "rbec_"

    # Capabilities every role entry must carry
    capabilities: List[str] = ["edit", "elementor"]

    # Identity directory (JSON file with "roles" and "users")
    identity_file: Optional[str] = None
    current_user_id: Optional[str] = None

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    project_name: str = "Role-Based Edit Control"
    version: str = "1.0.0"
    export_version: str = "1.0"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
