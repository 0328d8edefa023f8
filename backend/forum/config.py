"""Application configuration."""

import secrets
from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = "development"  # development, staging, production

    # Development mode (random JWT secret if none given) - MUST be False in production
    dev_mode: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./forum.db"

    # Session tokens. jwt_maxage is in minutes, for both the token and the cookie.
    jwt_secret_key: Optional[str] = None
    jwt_algorithm: str = "HS256"
    jwt_maxage: int = 60

    # Account verification / password reset
    email_verification: bool = True
    verification_token_hours: int = 24
    reset_token_minutes: int = 30

    # URLs
    host_url: str = "http://localhost:8000"

    # Cookie security
    cookie_secure: bool = False
    cookie_domain: str | None = None

    # OAuth flow cookies (seconds) and provider call timeout (seconds)
    oauth_cookie_max_age: int = 600
    oauth_http_timeout: float = 10.0

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = ""

    # Facebook OAuth
    facebook_client_id: str = ""
    facebook_client_secret: str = ""
    facebook_redirect_uri: str = ""

    # Discord OAuth
    discord_client_id: str = ""
    discord_client_secret: str = ""
    discord_redirect_uri: str = ""

    # Rate limiting of the public auth endpoints
    rate_limit_enabled: bool = True

    # Prometheus /metrics endpoint
    metrics_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @model_validator(mode="after")
    def _set_dev_defaults(self) -> "Settings":
        """Generate a random JWT secret in dev mode; require it otherwise."""
        if not self.jwt_secret_key:
            if self.dev_mode:
                self.jwt_secret_key = secrets.token_hex(32)
            else:
                raise ValueError("Missing required secret (set DEV_MODE=true for development): JWT_SECRET_KEY")
        if self.jwt_maxage <= 0:
            raise ValueError("JWT_MAXAGE must be a positive number of minutes")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def session_cookie_max_age(self) -> int:
        """Session cookie lifetime in seconds."""
        return self.jwt_maxage * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
