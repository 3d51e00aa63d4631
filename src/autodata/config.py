"""Configuration management for autodata.

Loads API keys and settings from environment variables using Pydantic.
Secrets belong in .env (never hardcoded).

Usage:
    from autodata.config import settings

    print(settings.cache_dir)
    print(settings.provider_timeout)
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """autodata configuration from environment variables.

    Loads from .env file automatically. Validates on instantiation.
    API keys are optional: a provider whose key is missing is disabled and
    the lookup carries on with the remaining providers.

    Attributes:
        dvla_api_key: DVLA Vehicle Enquiry Service key
        checkcardetails_api_key: CheckCarDetails API key
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR)
        cache_dir: Directory for Parquet cache files
        cache_backend: 'parquet' or 'memory'
        cache_ttl_days: Age after which a cache entry is cold
        provider_timeout: Per-provider call bound (seconds)
        lookup_timeout: Whole-lookup deadline (seconds)
        default_mileage: Mileage basis for valuations when none is given
        provider_costs: Per-provider cost overrides (GBP per call)
        provider_trust: Per-provider trust tier overrides
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    # API Keys (optional: provider disabled if absent)
    dvla_api_key: str | None = Field(default=None, description="DVLA VES API key")
    checkcardetails_api_key: str | None = Field(
        default=None, description="CheckCarDetails API key"
    )

    dvla_base_url: str = Field(
        default="https://driver-vehicle-licensing.api.gov.uk/vehicle-enquiry/v1",
        description="DVLA Vehicle Enquiry Service base URL",
    )
    checkcardetails_base_url: str = Field(
        default="https://api.checkcardetails.co.uk",
        description="CheckCarDetails base URL",
    )

    # System Settings
    log_level: str = Field(default="INFO", description="Logging level")
    cache_dir: str = Field(default="data", description="Parquet cache directory")
    cache_backend: str = Field(default="parquet", description="Cache backend")
    cache_ttl_days: int = Field(default=30, ge=1, description="Cache freshness window (days)")

    # Lookup bounds
    provider_timeout: float = Field(default=10.0, gt=0, description="Per-provider timeout (s)")
    lookup_timeout: float = Field(default=30.0, gt=0, description="Lookup deadline (s)")
    default_mileage: int = Field(
        default=50_000, ge=0, description="Valuation mileage when the caller gives none"
    )

    # Rate Limiting (conservative defaults)
    dvla_rate_limit: int = Field(default=5, ge=1, description="DVLA requests/second")
    checkcardetails_rate_limit: int = Field(
        default=5, ge=1, description="CheckCarDetails requests/second"
    )

    # Provider registry overrides (JSON objects in the environment)
    provider_costs: dict[str, float] = Field(
        default_factory=dict, description="Cost per call overrides by provider id"
    )
    provider_trust: dict[str, int] = Field(
        default_factory=dict, description="Trust tier overrides by provider id"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"log_level must be one of {valid}, got {v}")
        return v_upper

    @field_validator("cache_backend")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        """Ensure cache backend is known."""
        v_lower = v.lower()
        if v_lower not in {"parquet", "memory"}:
            raise ValueError(f"cache_backend must be 'parquet' or 'memory', got '{v}'")
        return v_lower

    @field_validator("provider_costs")
    @classmethod
    def validate_provider_costs(cls, v: dict[str, float]) -> dict[str, float]:
        """Costs are non-negative."""
        negative = {k: c for k, c in v.items() if c < 0}
        if negative:
            raise ValueError(f"provider_costs must be >= 0, got {negative}")
        return v


# Global settings instance, loaded once at import
settings = Settings()
