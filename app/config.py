"""
Backoffice Admin - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "Backoffice Admin"
    app_env: str = "development"
    debug: bool = True
    secret_key: str  # Required - signs the session cookie

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str  # Required - e.g. postgresql+asyncpg://...

    # ===========================================
    # JWT AUTHENTICATION (API clients)
    # ===========================================
    jwt_secret_key: str  # Required - must be set in .env
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # ===========================================
    # WEB SESSION
    # ===========================================
    session_cookie_name: str = "backoffice_session"
    session_max_age_seconds: int = 60 * 60 * 12
    session_https_only: bool = False

    # Named routes the impersonation flow redirects to
    login_url: str = "/login"
    dashboard_url: str = "/dashboard"

    # ===========================================
    # LOCALIZATION
    # ===========================================
    default_locale: str = "en"
    fallback_locale: str = "en"

    # ===========================================
    # OPTIONAL MODULES
    # Permissions belonging to a disabled module are never synced.
    # ===========================================
    modules_clients_enabled: bool = False
    modules_api_enabled: bool = False

    # ===========================================
    # SUPER ADMIN BOOTSTRAP
    # Leave empty to skip seeding on startup.
    # ===========================================
    super_admin_email: str = ""
    super_admin_password: str = ""
    super_admin_name: str = "Super Admin"

    # ===========================================
    # CORS SETTINGS
    # ===========================================
    cors_origins: str = "http://localhost:3000,http://localhost:8000,http://127.0.0.1:8000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()


# Export settings instance
settings = get_settings()
