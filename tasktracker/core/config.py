"""Configuration management for tasktracker."""

from pathlib import Path

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

    # Database Configuration
    database_url: str = Field(default="sqlite:tasks.db", description="Database connection string (<driver>:<path>)")
    migrations_dir: Path | None = Field(
        default=None, description="Directory of NNN_name.sql migrations (defaults to the packaged migrations)"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    service_name: str = Field(default="tasktracker", description="Service name reported to Logfire")
    environment: str = Field(default="production", description="Deployment environment reported to Logfire")


# Application Constants
class Constants:
    """Application-wide constants."""

    # Connection Pool
    POOL_MAX_CONNECTIONS: int = 5  # SQLite serializes writers, keep this small
    POOL_MIN_CONNECTIONS: int = 1
    POOL_MAX_LIFETIME_SECONDS: float = 3600.0  # 1 hour
    POOL_ACQUIRE_TIMEOUT_SECONDS: float = 3.0
    POOL_TEST_BEFORE_ACQUIRE: bool = True

    # SQLite
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 5.0
    SQLITE_JOURNAL_MODE: str = "WAL"
    SQLITE_SYNCHRONOUS: str = "NORMAL"

    # Field Limits
    MAX_TITLE_LENGTH: int = 200
    MAX_DESCRIPTION_LENGTH: int = 2000
    MIN_USERNAME_LENGTH: int = 3
    MAX_USERNAME_LENGTH: int = 50

    # Paths
    PACKAGE_ROOT: Path = Path(__file__).parent.parent
    PROJECT_ROOT: Path = PACKAGE_ROOT.parent
    MIGRATIONS_DIR: Path = PACKAGE_ROOT / "migrations"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
