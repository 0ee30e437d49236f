"""
sayso - Configuration and settings.

CoreSettings contains only what the access-control and onboarding engine needs.
Settings extends it with Supabase credentials for the web app and CLI.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    """
    Core settings shared by the guard, the pipeline and the persistence layer.

    No Supabase fields required, so the state machine can be driven
    (and tested) without backend credentials.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    sayso_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Route guard
    login_redirect: str = "/login"

    # Client transport (onboarding endpoints)
    api_base_url: str = "http://localhost:8000/api"

    # Persistence retry policy
    background_save_max_retries: int = Field(default=3, ge=0)
    completion_max_retries: int = Field(default=3, ge=0)
    save_retry_base_delay: float = Field(default=1.0, ge=0)  # seconds

    # SAYSO_LOG_SESSIONS=1 - write guard decisions to session_logs/ (dev only)
    sayso_log_sessions: bool = False

    @property
    def is_development(self) -> bool:
        return self.sayso_env == "development"

    @property
    def is_production(self) -> bool:
        return self.sayso_env == "production"


class Settings(CoreSettings):
    """Full application settings (web app, CLI) including Supabase."""

    # Supabase
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str


@lru_cache
def get_core_settings() -> CoreSettings:
    """Get cached CoreSettings instance (no Supabase fields required)."""
    return CoreSettings()


@lru_cache
def get_settings() -> Settings:
    """Get cached full settings instance."""
    return Settings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: Settings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


class _CoreSettingsProxy:
    """Lazy proxy for CoreSettings."""

    _instance: CoreSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_core_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
core_settings = _CoreSettingsProxy()
