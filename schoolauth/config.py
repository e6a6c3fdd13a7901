"""
Application configuration.

Loads settings from environment variables with sensible defaults.
The auth core never reads settings directly: it receives an immutable
`schoolauth.auth.config.AuthConfig` built once at startup.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    app_url: str = "http://localhost:3000"  # used in e-mail links
    cors_origins: str = "http://localhost:3000"

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = ""  # required; startup fails when empty
    jwt_algorithm: str = "HS256"
    session_ttl_days: int = 7
    bcrypt_rounds: int = 12

    verification_token_ttl_hours: int = 24
    reset_token_ttl_hours: int = 24
    admin_invite_ttl_hours: int = 24

    # ==========================================================================
    # AWS (SES e-mail delivery)
    # ==========================================================================

    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_ses_from_email: str = ""

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def use_aws(self) -> bool:
        """Whether AWS services should be used."""
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    @property
    def verification_token_ttl(self) -> timedelta:
        return timedelta(hours=self.verification_token_ttl_hours)

    @property
    def reset_token_ttl(self) -> timedelta:
        return timedelta(hours=self.reset_token_ttl_hours)

    @property
    def admin_invite_ttl(self) -> timedelta:
        return timedelta(hours=self.admin_invite_ttl_hours)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
