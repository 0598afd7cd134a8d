"""
Configuration Management for Trip Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which knobs the ledger exposes and
ensures every value is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Currency and settlement configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    base_currency: str = Field(
        default="JPY",
        min_length=3,
        max_length=3,
        description="ISO code of the trip's settlement currency"
    )
    foreign_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="ISO code of the single alternate currency"
    )
    default_exchange_rate: Decimal = Field(
        default=Decimal("165"),
        gt=0,
        description="1 FOREIGN = rate x BASE, used for new trips"
    )

    # Tolerances
    settlement_epsilon: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Balances within this of zero count as settled"
    )
    zero_sum_tolerance: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="Allowed drift of the sum of all net balances"
    )

    @field_validator('base_currency', 'foreign_currency')
    @classmethod
    def normalize_currency_code(cls, v: str) -> str:
        """Currency codes are stored upper-case."""
        return v.strip().upper()


class StorageSettings(BaseSettings):
    """Trip storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        pattern="^(json|memory)$",
        description="Storage backend to use"
    )
    data_dir: Path = Field(
        default=Path(".trip_data"),
        description="Directory holding one JSON file per trip"
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
    default_trip_name: str = Field(
        default="My Trip",
        max_length=100,
        description="Name given to a trip created from the UI"
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
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the ones that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
