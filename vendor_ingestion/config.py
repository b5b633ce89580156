"""Configuration management using pydantic-settings."""
from decimal import Decimal
from pathlib import Path
from typing import Dict

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
import structlog


DEFAULT_PROFILES_PATH = Path(__file__).parent / "data" / "vendor_profiles.yaml"


class CatalogSettings(BaseSettings):
    """Shared catalog cache configuration.

    All settings prefixed with CATALOG_ (e.g., CATALOG_STALE_AFTER_DAYS=120)
    """

    # Default confidence assigned to an entry when the writer gives none
    source_confidence: Dict[str, int] = Field(
        default={
            "manual": 100,
            "api": 95,
            "web_scrape": 85,
            "email_parse": 70,
        },
        description="Default confidence score per data source (0-100)"
    )

    # Lifecycle
    stale_after_days: int = Field(
        default=180,
        ge=1,
        le=3650,
        description="Unverified entries untouched for this long are evictable"
    )
    evict_max_times_ordered: int = Field(
        default=1,
        ge=1,
        description="Only entries referenced at most this many times are evicted"
    )

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class ParsingSettings(BaseSettings):
    """Document parsing configuration.

    All settings prefixed with PARSE_ (e.g., PARSE_TOTALS_VALUE_TOLERANCE=0.50)

    Vendor profiles may override the totals tolerance through
    ``parsing.totals_tolerance`` in the profile file.
    """

    totals_value_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Allowed absolute difference between computed and declared order value"
    )
    totals_pieces_tolerance: int = Field(
        default=0,
        ge=0,
        description="Allowed absolute difference between computed and declared piece count"
    )

    model_config = SettingsConfigDict(
        env_prefix="PARSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class EnrichmentSettings(BaseSettings):
    """Frame enrichment (authoritative catalog lookup) configuration.

    All settings prefixed with ENRICH_ (e.g., ENRICH_CONCURRENCY=5)
    """

    timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="HTTP read timeout in seconds"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts per lookup on connection errors"
    )
    concurrency: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum number of frames looked up at the same time"
    )
    per_item_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=600.0,
        description="Hard time limit for enriching a single frame (seconds)"
    )
    min_confidence: float = Field(
        default=50.0,
        ge=0,
        le=100,
        description="Minimum cross-reference score to accept a catalog candidate"
    )

    model_config = SettingsConfigDict(
        env_prefix="ENRICH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str

    log_level: str = "INFO"
    environment: str = "development"

    # Vendor profile table
    vendor_profiles_path: Path = Field(
        default=DEFAULT_PROFILES_PATH,
        description="YAML file holding the versioned vendor profile table"
    )
    profile_cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        le=86400,
        description="How long a loaded profile table is reused before re-reading"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instances
settings = Settings()
catalog_settings = CatalogSettings()
parsing_settings = ParsingSettings()
enrichment_settings = EnrichmentSettings()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Initialize logging on module import (after settings are loaded)
configure_logging(settings.log_level)
