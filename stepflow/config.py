"""Application configuration."""

from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STEPFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="stepflow", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    # Webhooks
    webhook_base_url: str = Field(
        default="http://localhost:3000", description="Public base URL for webhook triggers"
    )

    # HTTP action
    http_timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    http_user_agent: str = Field(
        default="Workflow-Engine/1.0", description="User-Agent sent by HTTP steps"
    )

    # Email action
    smtp_host: Optional[str] = Field(default=None, description="SMTP host")
    smtp_port: int = Field(default=587, description="SMTP port")
    smtp_username: Optional[str] = Field(default=None, description="SMTP username")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS for SMTP")
    email_from: str = Field(
        default="noreply@stepflow.local", description="Default sender address"
    )
    sendgrid_api_url: str = Field(
        default="https://api.sendgrid.com/v3/mail/send", description="SendGrid send endpoint"
    )

    # Database action
    database_connections: Dict[str, str] = Field(
        default_factory=dict,
        description="Named SQLAlchemy async URLs, addressed by credentialId",
    )

    # Delay action
    max_delay_seconds: float = Field(
        default=86400.0, description="Upper bound for a single delay step"
    )

    # Schedule trigger
    default_cron: str = Field(default="0 0 * * *", description="Default cron expression")
    default_timezone: str = Field(default="UTC", description="Default schedule timezone")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("development", "dev")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() in ("production", "prod")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
