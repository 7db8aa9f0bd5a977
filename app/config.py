"""Application configuration."""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class RateLimitBackendName(str, Enum):
    """Available rate limit backends."""
    MEMORY = "memory"
    REDIS = "redis"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "storefront-factory"
    app_version: str = "0.2.0"
    environment: str = "development"
    debug: bool = False
    log_level: LogLevel = LogLevel.INFO
    json_logs: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"

    # Gatekeeper
    mcp_auth_token: str | None = None
    mcp_allowed_owners: str = ""  # Comma-separated GitHub owners
    mcp_rate_limit_max: int = Field(default=100, ge=1)
    mcp_rate_limit_window_sec: int = Field(default=60, ge=1)
    auth_fallback_header: str = "X-MCP-Key"
    request_id_header: str = "X-Request-ID"

    @property
    def allowed_owners(self) -> list[str]:
        """Parsed owner allowlist."""
        return [owner.strip() for owner in self.mcp_allowed_owners.split(",") if owner.strip()]

    # Rate limit storage
    rate_limit_backend: RateLimitBackendName = RateLimitBackendName.MEMORY
    redis_url: str = "redis://localhost:6379/2"

    # GitHub (source host and destination)
    github_token: str | None = None
    github_api_url: str = "https://api.github.com"
    github_user_agent: str = "frontends-mcp-server"
    template_repo_owner: str = "shopware"
    template_repo_name: str = "frontends"
    templates_root: str = "templates"
    packages_root: str = "packages"
    default_repo_description: str = "Shopware Frontends storefront"

    # Vercel (hosting provider)
    vercel_token: str | None = None
    vercel_team_id: str | None = None
    vercel_api_url: str = "https://api.vercel.com"
    vercel_framework: str = "nuxtjs"

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=30.0, gt=0)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
