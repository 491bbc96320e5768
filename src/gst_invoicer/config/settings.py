"""Configuration settings for the GST invoice generator."""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Rate service
    rate_api_url: str = Field(
        default="https://api.frankfurter.app", validation_alias="GST_RATE_API_URL"
    )
    rate_timeout: float = Field(default=10.0, validation_alias="GST_RATE_TIMEOUT")
    fallback_exchange_rate: Decimal = Field(
        default=Decimal("84.00"), gt=0, validation_alias="GST_FALLBACK_RATE"
    )
    base_currency: str = Field(default="USD", validation_alias="GST_BASE_CURRENCY")
    quote_currency: str = Field(default="INR", validation_alias="GST_QUOTE_CURRENCY")

    # Business profile storage
    profile_path: Path = Field(
        default=Path("~/.gst_invoicer/profile.json"), validation_alias="GST_PROFILE_PATH"
    )
    profile_storage_key: str = Field(
        default="gst-invoice-business-info", validation_alias="GST_PROFILE_KEY"
    )

    # Invoicing
    default_client_location: str = Field(
        default="United States", validation_alias="GST_DEFAULT_CLIENT_LOCATION"
    )
    export_delay_seconds: float = Field(
        default=0.5, ge=0, validation_alias="GST_EXPORT_DELAY"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
