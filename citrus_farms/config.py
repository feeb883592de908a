"""
Application configuration using Pydantic settings.
"""
from typing import Literal
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage Configuration
    storage_backend: Literal["memory", "file", "database", "remote"] = Field(
        default="database",
        description="Which persistence gateway backs the farm records"
    )
    database_url: str = Field(
        default="sqlite:///./citrus_farms.db",
        description="SQLAlchemy connection string for the relational backend"
    )
    data_file: str = Field(
        default="citrus_farms.json",
        description="Snapshot file used by the file backend"
    )

    # Remote API Configuration
    remote_api_base_url: str = Field(
        default="http://localhost:8000/api/v1",
        description="Base URL of a remote farm records API"
    )
    remote_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for remote API calls"
    )

    # Retry Configuration
    remote_max_attempts: int = Field(
        default=1,
        description="Attempts per remote call; 1 disables automatic retry"
    )
    remote_retry_min_wait: int = Field(
        default=1,
        description="Minimum wait time in seconds between retries"
    )
    remote_retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Listing and Filtering
    default_page_size: int = Field(
        default=10,
        description="Page size used when a list request gives no limit"
    )
    max_page_size: int = Field(
        default=100,
        description="Largest page size a list request may ask for"
    )
    contact_separator: str = Field(
        default="-",
        description="Character stripped from contacts before search matching"
    )

    # Spreadsheet Export
    sheet_name_max_length: int = Field(
        default=31,
        description="Maximum worksheet title length allowed by spreadsheet apps"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Whether per-client rate limiting is applied"
    )
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Citrus Farm Records",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
