"""
Configuration Management for SpendWise

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, one settings class
per concern, each with its own environment prefix. Nothing in this module
is required at import time: an unconfigured remote endpoint is reported by
the remote client as a ConfigurationError when first used.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteSettings(BaseSettings):
    """Hosted backend (REST) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDWISE_REMOTE_",
        extra="ignore"
    )

    base_url: str = Field(
        default="",
        description="Base URL of the hosted backend (http or https)"
    )
    anon_key: str = Field(
        default="",
        description="Anonymous API key, used as bearer when no user token exists"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="HTTP timeout for every remote call"
    )
    fetch_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for list queries on transport failures"
    )
    soft_delete: bool = Field(
        default=True,
        description="Mark rows deleted instead of removing them"
    )


class StorageSettings(BaseSettings):
    """Local Store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDWISE_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        description="Key-value backend: 'memory' or 'file'"
    )
    data_path: str = Field(
        default="spendwise_data.json",
        description="JSON document used by the file backend"
    )
    cloud_mirror_path: Optional[str] = Field(
        default=None,
        description="JSON document used as the mirrored cloud key-value slot"
    )

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"memory", "file"}:
            raise ValueError(f"Unsupported storage backend: {v}")
        return v


class SessionSettings(BaseSettings):
    """Session lifecycle configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDWISE_SESSION_",
        extra="ignore"
    )

    guest_data_ttl_days: int = Field(
        default=7,
        ge=1,
        description="Guest data older than this is purged before it is read"
    )
    purge_guest_on_background: bool = Field(
        default=True,
        description="Clear guest records when the app loses foreground"
    )


class SecuritySettings(BaseSettings):
    """App lock (security gate) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDWISE_SECURITY_",
        extra="ignore"
    )

    attempt_warning_threshold: int = Field(
        default=5,
        ge=1,
        description="Attempts shown in the remaining-attempts message (no lockout)"
    )
    biometric_reason: str = Field(
        default="Authentication is required to access your financial data",
        description="Prompt passed to the biometric authenticator"
    )


class CurrencySettings(BaseSettings):
    """Spot exchange rate configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDWISE_CURRENCY_",
        extra="ignore"
    )

    rates_url: str = Field(
        default="https://api.exchangerate-api.com/v4/latest/TRY",
        description="Endpoint returning {'rates': {...}} for the base currency"
    )
    base_currency: str = Field(
        default="TRY",
        description="Currency the rates are quoted against"
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def remote(self) -> RemoteSettings:
        return RemoteSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def session(self) -> SessionSettings:
        return SessionSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def currency(self) -> CurrencySettings:
        return CurrencySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    ``<name>_error`` entry for every section that failed to load.
    """
    results = {}
    settings = get_settings()

    for name in ("remote", "storage", "session", "security", "currency", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
