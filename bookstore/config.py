"""
API configuration settings.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings, read from the environment or a .env file."""

    # API Settings
    api_title: str = "Bookstore API"
    api_version: str = "1.0.0"
    api_description: str = "REST API for a bookstore: users, books, orders and reviews."

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"

    # Database Settings
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "bookstore"

    # Session Settings
    session_secret: str = "fallback-secret-for-dev-only"
    session_cookie_name: str = "bookstore.sid"
    session_max_age: int = 24 * 60 * 60  # cookie lifetime, seconds
    session_ttl: int = 14 * 24 * 60 * 60  # stored session lifetime, seconds
    session_same_site: str = "lax"

    # GitHub OAuth Settings
    github_client_id: str = ""
    github_client_secret: str = ""
    github_callback_url: str = ""
    github_scope: str = "user:email"
    oauth_timeout: float = 10.0

    # CORS Settings
    cors_origin: str = "*"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Normalise the environment mode flag."""
        return v.strip().lower()

    @field_validator("session_same_site")
    @classmethod
    def validate_same_site(cls, v):
        """Ensure the SameSite attribute is one the browser understands."""
        valid = ["strict", "lax", "none"]
        if v.lower() not in valid:
            raise ValueError(f"session_same_site must be one of: {valid}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def debug(self) -> bool:
        """Error details are exposed to callers outside production."""
        return not self.is_production

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]


# Global config instance
config = APIConfig()
