"""
Configuration Management for Techvibes Wallet

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Endpoint URLs, storage keys and display defaults live in one place so
that the gateway, the caches and the resolvers agree on them.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Remote backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TECHVIBES_API_",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://techvibs.com/bank/api_general/",
        description="Base URL shared by all backend endpoints"
    )
    account_endpoint: str = Field(
        default="access_account_general_local_api.php",
        description="Account query / accounts-by-identity endpoint"
    )
    history_endpoint: str = Field(
        default="access_history_general_local_api.php",
        description="Transaction history endpoint"
    )
    device_mapping_endpoint: str = Field(
        default="device_mappings_api.php",
        description="Device mapping upsert endpoint"
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=120.0,
        description="Per-request timeout"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for requests that fail at the transport level"
    )
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Base delay for exponential backoff between attempts"
    )

    @field_validator('base_url')
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Endpoints are joined onto the base URL."""
        return v if v.endswith("/") else v + "/"


class StorageSettings(BaseSettings):
    """Local key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TECHVIBES_STORAGE_",
        extra="ignore"
    )

    storage_path: str = Field(
        default=str(Path.home() / ".techvibes_wallet" / "store.json"),
        description="JSON file backing the key-value store"
    )
    device_fingerprint_key: str = Field(
        default="device_fingerprint",
        description="Key holding the device fingerprint"
    )
    mapped_profiles_key: str = Field(
        default="mapped_profiles",
        description="Key holding the cached profile/account directory"
    )
    last_chosen_account_key: str = Field(
        default="last_chosen_account",
        description="Key holding the last explicitly chosen account"
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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Account resolution
    default_fintech: str = Field(
        default="techvibes",
        description="Fintech used when neither the last choice nor the cache names one"
    )

    # History
    history_page_size: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Default number of records requested per history page"
    )

    # Device
    device_id_prefix: str = Field(
        default="fallback",
        description="Prefix for synthesized device fingerprints"
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
    def api(self) -> ApiSettings:
        return ApiSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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
    "<name>_error" entry for each failure. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("api", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
