"""Database configuration using Pydantic Settings.

Supports both PostgreSQL (production) and SQLite (development/testing).
Configuration is loaded from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Optional
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """
    Database configuration settings.

    Supports PostgreSQL for production and SQLite for development.
    All settings can be overridden via environment variables with DB_ prefix.

    Example environment variables:
        DB_DRIVER=postgresql+psycopg2
        DB_HOST=localhost
        DB_PORT=5432
        DB_NAME=leadflow
        DB_USER=leadflow
        DB_PASSWORD=secret
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database driver: postgresql+psycopg2 (production) or sqlite (dev)
    driver: str = Field(
        default="sqlite",
        description="Database driver (postgresql+psycopg2 or sqlite)"
    )

    # PostgreSQL settings
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="leadflow", description="Database name")
    user: str = Field(default="", description="Database user")
    password: str = Field(default="", description="Database password")

    # SQLite settings (for development/testing)
    sqlite_path: Path = Field(
        default=Path("data/leadflow.db"),
        description="Path to SQLite database file"
    )

    # Connection pool settings (ignored for SQLite)
    pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of connections to keep in the pool"
    )
    max_overflow: int = Field(
        default=20,
        ge=0,
        le=100,
        description="Max connections above pool_size"
    )
    pool_timeout: int = Field(
        default=30,
        ge=1,
        description="Seconds to wait for a connection from the pool"
    )
    pool_recycle: int = Field(
        default=1800,
        ge=60,
        description="Seconds after which a connection is recycled"
    )
    pool_pre_ping: bool = Field(
        default=True,
        description="Test connections before using them"
    )

    # Query settings
    echo_sql: bool = Field(
        default=False,
        description="Log all SQL statements (for debugging)"
    )
    query_timeout: int = Field(
        default=30,
        ge=1,
        description="Default query timeout in seconds"
    )

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite."""
        return "sqlite" in self.driver.lower()

    @computed_field
    @property
    def is_postgres(self) -> bool:
        """Check if using PostgreSQL."""
        return "postgresql" in self.driver.lower() or "postgres" in self.driver.lower()

    @computed_field
    @property
    def sync_url(self) -> str:
        """
        Get the database URL for the synchronous engine.

        Returns:
            SQLAlchemy database URL.
        """
        if self.is_sqlite:
            # Ensure parent directory exists
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{self.sqlite_path.absolute()}"

        auth = ""
        if self.user:
            auth = f"{self.user}"
            if self.password:
                auth += f":{self.password}"
            auth += "@"

        return f"{self.driver}://{auth}{self.host}:{self.port}/{self.name}"

    def get_connect_args(self) -> dict:
        """
        Get database-specific connection arguments.

        Returns:
            Dictionary of connection arguments for SQLAlchemy.
        """
        if self.is_sqlite:
            return {
                "check_same_thread": False,
                "timeout": self.query_timeout,
            }

        return {
            "connect_timeout": self.query_timeout,
        }


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """
    Get cached database settings instance.

    Returns:
        DatabaseSettings: Cached settings loaded from environment.
    """
    return DatabaseSettings()


def sqlite_settings(path: Path, echo_sql: bool = False) -> DatabaseSettings:
    """Build settings for a file-backed SQLite database (scripts and tests)."""
    return DatabaseSettings(driver="sqlite", sqlite_path=path, echo_sql=echo_sql)
