"""Application configuration using pydantic-settings.

Defaults are suitable for local development. In production the session secret
must come from the environment; the application refuses to start without it.
OAuth client credentials are optional here because a session may supply its
own through POST /auth/client-config.
"""

import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment variables:
    - SESSION_SECRET: For signing session cookies (required in production)
    - GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET: Default OAuth application
    - GOOGLE_REDIRECT_URI: Default OAuth callback URL
    - POST_LOGIN_REDIRECT: Where the browser lands after a successful login
    - ALLOWED_ORIGINS: Comma-separated origins allowed to call the API
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    port: int = 4000
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Sessions
    session_secret: str = ""
    session_cookie: str = "gsd_session"
    session_max_age: int = 4 * 60 * 60  # 4 hours

    # Default Google OAuth application
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:4000/auth/callback"

    # Frontend
    post_login_redirect: str = "http://localhost:5173/"
    allowed_origins: str = "http://localhost:5173"

    # Applied to /auth/login and /auth/callback
    auth_rate_limit: str = "10/minute"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Validate that required settings are configured."""
        if self.is_production and not self.session_secret:
            raise ValueError("Configuration errors:\n  - SESSION_SECRET must be set in production")

        # Development only: sessions do not survive a restart anyway
        if not self.session_secret:
            object.__setattr__(self, "session_secret", secrets.token_urlsafe(32))

        return self

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper

    @field_validator("session_max_age")
    @classmethod
    def validate_session_max_age(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("session_max_age must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    """
    return Settings()
