"""
Configuration management for GitStatViewer.

This module provides centralized configuration management with:
- Environment-specific settings
- Type validation and defaults
- Database, GitHub and synchronization configuration
- Monitoring and logging configuration
"""

from functools import lru_cache
from typing import Optional, List, Dict, Any

from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings
from pydantic_settings import BaseSettings as PydanticBaseSettings


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    url: str = Field(
        default="sqlite+aiosqlite:///./gitstatviewer.db",
        description="Async database connection URL",
    )
    pool_size: int = Field(default=10, description="Connection pool size")
    max_overflow: int = Field(default=20, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Connection pool timeout")
    pool_recycle: int = Field(default=3600, description="Connection pool recycle time")
    echo: bool = Field(default=False, description="Enable SQL logging")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v):
        if v.startswith(("postgresql://", "postgres://")):
            # Plain PostgreSQL URLs are upgraded to the async driver
            return "postgresql+asyncpg://" + v.split("://", 1)[1]
        if not v.startswith(("sqlite+aiosqlite://", "postgresql+asyncpg://")):
            raise ValueError("Database URL must be SQLite (aiosqlite) or PostgreSQL (asyncpg)")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class GitHubSettings(BaseSettings):
    """GitHub API configuration settings."""

    api_base_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    access_token: Optional[SecretStr] = Field(
        default=None, description="GitHub access token for API calls"
    )
    user_agent: str = Field(default="GitStatViewer", description="User-Agent header")
    timeout: float = Field(default=30.0, description="Upstream request timeout in seconds")

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("GitHub API URL must be HTTP/HTTPS")
        return v.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class SyncSettings(BaseSettings):
    """Commit synchronization configuration settings."""

    probe_size: int = Field(
        default=5, ge=1, le=100, description="Number of most recent commits probed for overlap"
    )
    backfill_threshold: Optional[int] = Field(
        default=None,
        ge=1,
        description="Absent probed commits that trigger a full backfill (default: all probed)",
    )
    page_size: int = Field(default=100, ge=1, le=100, description="Commits per page during backfill")
    poll_interval_seconds: float = Field(default=5.0, gt=0, description="Polling interval")


class SecuritySettings(BaseSettings):
    """Security configuration settings."""

    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")


class MonitoringSettings(BaseSettings):
    """Monitoring and logging configuration settings."""

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Logging format string",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


class ServiceSettings(BaseSettings):
    """Service configuration settings."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=4000, description="Repository tracker service port")
    request_timeout: float = Field(default=30.0, description="CLI HTTP request timeout")


class Settings(PydanticBaseSettings):
    """
    Main application settings with environment-specific configuration.

    Supports multiple environments:
    - development: Local development settings
    - testing: Test environment settings
    - production: Production environment settings
    """

    # Core application settings
    app_name: str = Field(default="GitStatViewer", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Section configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        valid_environments = ["development", "testing", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator("debug")
    @classmethod
    def validate_debug_mode(cls, v, info):
        if info.data.get("environment") == "production" and v:
            raise ValueError("Debug mode cannot be enabled in production")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Example:
        >>> settings = get_settings()
        >>> print(settings.sync.probe_size)
    """
    return Settings()


# Global settings instance
settings = get_settings()


def get_database_url() -> str:
    """Get database URL with environment-specific configuration."""
    if settings.environment == "testing":
        return "sqlite+aiosqlite:///:memory:"
    return settings.database.url


def export_config() -> Dict[str, Any]:
    """
    Export configuration for external tools and monitoring.

    Returns:
        Dict[str, Any]: Configuration export (without sensitive data)
    """
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "database": {
            "driver": settings.database.url.split("://", 1)[0],
            "echo": settings.database.echo,
        },
        "github": {
            "api_base_url": settings.github.api_base_url,
            "authenticated": settings.github.access_token is not None,
            "timeout": settings.github.timeout,
        },
        "sync": {
            "probe_size": settings.sync.probe_size,
            "backfill_threshold": settings.sync.backfill_threshold,
            "page_size": settings.sync.page_size,
            "poll_interval_seconds": settings.sync.poll_interval_seconds,
        },
        "monitoring": {
            "log_level": settings.monitoring.log_level,
        },
        "service": {
            "port": settings.service.port,
        },
    }


if __name__ == "__main__":
    import json

    print(json.dumps(export_config(), indent=2))
